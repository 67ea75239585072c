"""Identity resolution between domain records and identity provider records.

Responsibilities of this stage:
- decide which identity (if any) corresponds to a domain candidate
- report the evidence that tied them together
- page through the full identity population when heuristics are needed

Matching policy, first rule wins:
1) trusted ``identity_ref`` on the domain record -> ``by-reference``
2) login key equals the key derived from the business code -> ``by-login-key``
3) ``claims.code`` equals the business code -> ``by-claim-code``
4) nothing -> ``NoIdentityMatch``

Several identities satisfying the same rule is reported as ambiguous; the
resolver never picks one on its own.

Out of scope for this stage:
- creating, updating or deleting identities
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from .contracts import (
    AmbiguousIdentityMatch,
    MatchEvidence,
    NoIdentityMatch,
    ResolvedIdentity,
)
from .normalize import keys_match, login_key_for, normalize_key

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Sequence

    from ledgersync.domain.model import IdentityRecord
    from ledgersync.domain.ports import IdentityProvider

    from .contracts import IdentityCandidate, IdentityResolution

log = logging.getLogger(__name__)

DEFAULT_LOGIN_DOMAIN = "ledger-system.local"
DEFAULT_PAGE_SIZE = 1000

type MatchRule = Callable[[IdentityRecord, IdentityCandidate, str], bool]


def _matches_login_key(identity: IdentityRecord, _candidate: IdentityCandidate, key: str) -> bool:
    return keys_match(identity.login_key, key)


def _matches_claim_code(identity: IdentityRecord, candidate: IdentityCandidate, _key: str) -> bool:
    return keys_match(identity.claims.code, candidate.code)


MATCH_RULES: tuple[tuple[MatchEvidence, MatchRule], ...] = (
    (MatchEvidence.BY_LOGIN_KEY, _matches_login_key),
    (MatchEvidence.BY_CLAIM_CODE, _matches_claim_code),
)


@dataclass(slots=True)
class CodeIndex:
    """Reverse lookup from identity to business code, using the same rules."""

    by_login_key: dict[str, str] = field(default_factory=dict[str, str])
    by_code: dict[str, str] = field(default_factory=dict[str, str])

    def lookup(self, identity: IdentityRecord) -> tuple[str, MatchEvidence] | None:
        login_key = normalize_key(identity.login_key)
        if login_key and login_key in self.by_login_key:
            return self.by_login_key[login_key], MatchEvidence.BY_LOGIN_KEY
        claim_code = normalize_key(identity.claims.code)
        if claim_code and claim_code in self.by_code:
            return self.by_code[claim_code], MatchEvidence.BY_CLAIM_CODE
        return None


@dataclass(slots=True)
class IdentityResolver:
    """Resolve domain candidates against the identity provider population."""

    provider: IdentityProvider
    login_domain: str = DEFAULT_LOGIN_DOMAIN
    page_size: int = DEFAULT_PAGE_SIZE

    def login_key_for(self, code: str) -> str:
        return login_key_for(code, self.login_domain)

    async def iter_identities(self) -> AsyncIterator[IdentityRecord]:
        """Yield every identity, requesting pages until a short one comes back."""

        seen: set[str] = set()
        page = 1
        while True:
            batch = await self.provider.list_identities(page, self.page_size)
            fresh = [identity for identity in batch if identity.id not in seen]
            for identity in fresh:
                seen.add(identity.id)
                yield identity
            if len(batch) < self.page_size:
                return
            if not fresh:
                log.warning(
                    "Identity provider repeated page %s; stopping after %s identities",
                    page,
                    len(seen),
                )
                return
            page += 1

    async def list_identities(self) -> list[IdentityRecord]:
        return [identity async for identity in self.iter_identities()]

    async def resolve(
        self,
        candidate: IdentityCandidate,
        *,
        trust_reference: bool = True,
        population: Sequence[IdentityRecord] | None = None,
    ) -> IdentityResolution:
        """Resolve ``candidate``; ``population`` skips the provider listing."""

        if trust_reference and candidate.identity_ref:
            return ResolvedIdentity(
                identity_id=candidate.identity_ref,
                evidence=MatchEvidence.BY_REFERENCE,
            )

        identities = population if population is not None else await self.list_identities()
        return self.match(candidate, identities)

    def match(
        self,
        candidate: IdentityCandidate,
        identities: Iterable[IdentityRecord],
    ) -> IdentityResolution:
        """Apply the heuristic rules (2 and 3) to an already loaded population."""

        population = tuple(identities)
        key = self.login_key_for(candidate.code)
        for evidence, rule in MATCH_RULES:
            matches = tuple(identity for identity in population if rule(identity, candidate, key))
            if not matches:
                continue
            if len(matches) == 1:
                return ResolvedIdentity(
                    identity_id=matches[0].id,
                    evidence=evidence,
                    identity=matches[0],
                )
            log.warning(
                "Business code %s matches %s identities %s; refusing to pick one",
                candidate.code,
                evidence,
                [identity.id for identity in matches],
            )
            return AmbiguousIdentityMatch(candidates=matches, evidence=evidence)
        return NoIdentityMatch(reason="no_identity_for_code")

    def index_codes(self, codes: Iterable[str]) -> CodeIndex:
        index = CodeIndex()
        for code in codes:
            normalized = normalize_key(code)
            if not normalized:
                continue
            index.by_code.setdefault(normalized, code)
            index.by_login_key.setdefault(normalize_key(self.login_key_for(code)), code)
        return index
