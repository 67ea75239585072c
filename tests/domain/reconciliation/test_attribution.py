from __future__ import annotations

from dataclasses import replace
from datetime import UTC, datetime, timedelta
from uuid import uuid4

from ledgersync.domain.model import ActorIdentity, AuditOperation, EntityKind
from ledgersync.domain.ports import AuditStoreError
from ledgersync.domain.reconciliation import (
    AuditAttributionPatcher,
    PatchApplied,
    PatchSkipped,
    SkipReason,
)
from tests.support.fakes import InMemoryAuditStore

NOW = datetime(2025, 4, 1, 9, 30, tzinfo=UTC)
ACTOR = ActorIdentity(name="Suzuki Ichiro", code="A001", login_key="a001@ledger-system.local")


def _patcher(store: InMemoryAuditStore) -> AuditAttributionPatcher:
    return AuditAttributionPatcher(store, window=timedelta(seconds=5), clock=lambda: NOW)


def _row(
    store: InMemoryAuditStore,
    target: str,
    operation: AuditOperation = AuditOperation.UPDATE,
    *,
    seconds_ago: float = 1,
    table: str = "employees",
) -> int:
    payload = {"id": target, "name": "Taro"}
    row = store.append(
        table,
        operation,
        old=payload if operation is AuditOperation.DELETE else None,
        new=None if operation is AuditOperation.DELETE else payload,
        occurred_at=NOW - timedelta(seconds=seconds_ago),
    )
    return row.id


async def test_patch_rewrites_only_actor_fields() -> None:
    store = InMemoryAuditStore()
    target = str(uuid4())
    row_id = _row(store, target)
    before = store.row(row_id)

    result = await _patcher(store).patch_actor(
        target,
        EntityKind.EMPLOYEE,
        ACTOR,
        AuditOperation.UPDATE,
    )

    assert isinstance(result, PatchApplied)
    after = store.row(row_id)
    assert after.actor_name == "Suzuki Ichiro"
    assert after.actor_code == "A001"
    assert replace(after, actor_name=before.actor_name, actor_code=before.actor_code) == before


async def test_delete_rows_are_matched_on_old_payload() -> None:
    store = InMemoryAuditStore()
    target = str(uuid4())
    row_id = _row(store, target, AuditOperation.DELETE)

    result = await _patcher(store).patch_actor(target, "employees", ACTOR, AuditOperation.DELETE)

    assert isinstance(result, PatchApplied)
    assert result.row_id == row_id


async def test_newest_row_in_window_wins() -> None:
    store = InMemoryAuditStore()
    target = str(uuid4())
    older = _row(store, target, seconds_ago=3)
    newer = _row(store, target, seconds_ago=1)

    result = await _patcher(store).patch_actor(target, "employees", ACTOR, AuditOperation.UPDATE)

    assert isinstance(result, PatchApplied)
    assert result.row_id == newer
    assert result.candidates == 2
    assert store.row(older).actor_name == "service_role"


async def test_repeated_patch_targets_newest_row_again() -> None:
    store = InMemoryAuditStore()
    target = str(uuid4())
    first = _row(store, target, seconds_ago=2)
    second = _row(store, target, seconds_ago=1)
    patcher = _patcher(store)

    one = await patcher.patch_actor(target, "employees", ACTOR, AuditOperation.UPDATE)
    two = await patcher.patch_actor(
        target,
        "employees",
        ActorIdentity(name="Tanaka", code="A002"),
        AuditOperation.UPDATE,
    )

    assert isinstance(one, PatchApplied)
    assert isinstance(two, PatchApplied)
    assert one.row_id == two.row_id == second
    assert store.row(second).actor_code == "A002"
    assert store.row(first).actor_code == "service_role"


async def test_rows_outside_window_or_for_other_targets_are_ignored() -> None:
    store = InMemoryAuditStore()
    target = str(uuid4())
    _row(store, target, seconds_ago=30)
    _row(store, str(uuid4()))
    _row(store, target, AuditOperation.INSERT)
    _row(store, target, table="devices")

    result = await _patcher(store).patch_actor(target, "employees", ACTOR, AuditOperation.UPDATE)

    assert isinstance(result, PatchSkipped)
    assert result.reason is SkipReason.NO_MATCHING_ROW
    assert store.patched == []


async def test_missing_actor_is_skipped_without_querying() -> None:
    store = InMemoryAuditStore()
    store.fail_query = AuditStoreError("must not be called")

    result = await _patcher(store).patch_actor(uuid4(), "employees", None, AuditOperation.UPDATE)

    assert isinstance(result, PatchSkipped)
    assert result.reason is SkipReason.NO_ACTOR


async def test_query_failure_is_swallowed() -> None:
    store = InMemoryAuditStore()
    store.fail_query = AuditStoreError("timeout")

    result = await _patcher(store).patch_actor(uuid4(), "employees", ACTOR, AuditOperation.UPDATE)

    assert isinstance(result, PatchSkipped)
    assert result.reason is SkipReason.QUERY_FAILED
    assert result.detail == "timeout"


async def test_patch_failure_is_swallowed() -> None:
    store = InMemoryAuditStore()
    target = str(uuid4())
    row_id = _row(store, target)
    store.fail_patch = AuditStoreError("permission denied")

    result = await _patcher(store).patch_actor(target, "employees", ACTOR, AuditOperation.UPDATE)

    assert isinstance(result, PatchSkipped)
    assert result.reason is SkipReason.PATCH_FAILED
    assert store.row(row_id).actor_name == "service_role"


def test_actor_display_fallbacks() -> None:
    assert ActorIdentity(name="  ", name_kana="スズキ", code="A001").display_name == "スズキ"
    assert ActorIdentity(login_key="a001@ledger-system.local").display_name == (
        "a001@ledger-system.local"
    )
    assert ActorIdentity().display_name == "Unknown User"
    assert ActorIdentity().display_code == ""
