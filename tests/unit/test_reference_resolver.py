from __future__ import annotations

import pytest

from installment_import.db.memory import InMemoryRepository
from installment_import.db.repository import RepositoryError
from installment_import.models.config_models import TargetEntity
from installment_import.services.reference_resolver import (
    ReferenceMap,
    ResolutionSourceUnavailable,
    build_reference_map,
    build_reference_maps,
    normalize_sequence_number,
)


@pytest.mark.parametrize(
    "value, expected",
    [
        ("7", "7"),
        ("007", "7"),
        ("7.0", "7"),
        (7, "7"),
        (7.5, "7.5"),
        ("7.50", "7.5"),
        ("", None),
        ("C-2", None),
        ("nan", None),
    ],
)
def test_normalize_sequence_number(value, expected):
    assert normalize_sequence_number(value) == expected


def test_numeric_forms_resolve_to_the_same_id():
    ref = ReferenceMap(TargetEntity.CUSTOMERS)
    ref.add(7, "cust-7")
    for value in ("7", "007", "7.0", 7, " 7 "):
        assert ref.resolve(value) == "cust-7"
    assert "8" not in ref


def test_text_sequence_numbers_match_exactly():
    ref = ReferenceMap(TargetEntity.CUSTOMERS)
    ref.add("C-2", "cust-c2")
    assert ref.resolve("C-2") == "cust-c2"
    assert ref.resolve("c-2") is None


def test_exact_key_wins_over_normalized_collision():
    ref = ReferenceMap(TargetEntity.CUSTOMERS)
    ref.add("7", "first")
    ref.add("007", "second")
    assert ref.resolve("7") == "first"
    assert ref.resolve("007") == "second"
    assert ref.resolve("7.0") == "first"


def test_blank_sequence_numbers_are_skipped():
    ref = ReferenceMap(TargetEntity.CUSTOMERS)
    ref.add(None, "x")
    ref.add("  ", "y")
    assert len(ref) == 0


def test_build_reference_map(repository):
    ref = build_reference_map(repository, TargetEntity.CUSTOMERS)
    assert ref.entity is TargetEntity.CUSTOMERS
    assert ref.resolve("007") == "cust-7"
    assert ref.resolve("C-2") == "cust-c2"


def test_build_reference_maps_keyed_by_entity(payments_repository):
    maps = build_reference_maps(payments_repository, [TargetEntity.TRANSACTIONS, TargetEntity.CUSTOMERS])
    assert set(maps) == {TargetEntity.TRANSACTIONS, TargetEntity.CUSTOMERS}
    assert maps[TargetEntity.TRANSACTIONS].resolve("2") == "tx-2"


class _BrokenRepository(InMemoryRepository):
    def fetch_sequence_numbers(self, table):
        raise RepositoryError("connection reset")


def test_fetch_failure_is_fatal():
    with pytest.raises(ResolutionSourceUnavailable) as ei:
        build_reference_map(_BrokenRepository(), TargetEntity.CUSTOMERS)
    assert "connection reset" in str(ei.value)
