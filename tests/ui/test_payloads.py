from __future__ import annotations

import json
from typing import TYPE_CHECKING

import pytest
from pydantic import ValidationError

from ledgersync.domain.model import Role
from ledgersync.ui.payloads import load_employee_file, parse_employee_batch

if TYPE_CHECKING:
    from pathlib import Path


def test_single_object_is_a_batch_of_one() -> None:
    entries = parse_employee_batch(
        json.dumps({"employee_code": 100, "name": "Taro", "authority": "admin", "email": " "})
    )

    assert len(entries) == 1
    assert entries[0].code == "100"
    assert entries[0].role is Role.ADMIN
    assert entries[0].email is None


def test_array_keeps_order_and_version() -> None:
    entries = parse_employee_batch(
        b'[{"code": "E1", "name": "A", "version": 3}, {"code": "E2", "name": "B", "x": 1}]'
    )

    assert [entry.code for entry in entries] == ["E1", "E2"]
    assert entries[0].version == 3
    assert entries[1].version is None


def test_password_alias_is_kept_out_of_repr() -> None:
    entries = parse_employee_batch('{"code": "E1", "name": "A", "password": "hunter22"}')

    assert entries[0].credential == "hunter22"
    assert "hunter22" not in repr(entries[0])


def test_missing_name_is_rejected() -> None:
    with pytest.raises(ValidationError):
        parse_employee_batch('{"code": "E1"}')


def test_blank_code_is_rejected() -> None:
    with pytest.raises(ValidationError):
        parse_employee_batch('{"code": "  ", "name": "A"}')


def test_load_employee_file(tmp_path: Path) -> None:
    path = tmp_path / "employees.json"
    path.write_text('[{"code": "E1", "name": "A"}]', encoding="utf-8")

    entries = load_employee_file(path)

    assert entries[0].code == "E1"
