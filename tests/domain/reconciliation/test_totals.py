from __future__ import annotations

from decimal import Decimal

from sparetrack.domain.model import ContextKind
from sparetrack.domain.reconciliation import derive_total
from tests.helpers.items import assignment, make_item


def test_context_sum_includes_request_and_stock() -> None:
    item = make_item(
        unit_value="2.50",
        contexts=(
            assignment("Req-Jan", 4),
            assignment("Bodega", 2, ContextKind.STOCK),
        ),
        legacy_requested_qty=100,
    )

    assert derive_total(item) == Decimal("15.00")


def test_falls_back_to_legacy_quantities_when_contexts_sum_to_zero() -> None:
    item = make_item(
        unit_value=3,
        contexts=(assignment("Req-Jan", 0),),
        legacy_requested_qty=2,
        legacy_stock_qty=5,
    )

    assert derive_total(item) == Decimal(21)


def test_zero_unit_value_gives_zero_total() -> None:
    item = make_item(unit_value=0, contexts=(assignment("Req-Jan", 9),), legacy_stock_qty=3)

    assert derive_total(item) == 0

