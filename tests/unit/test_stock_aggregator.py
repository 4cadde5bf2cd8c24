"""Unit tests for the pure stock aggregation functions.

No database involved: rows are plain objects with the three fields the
reduction reads.
"""

from types import SimpleNamespace

import pytest
from services.commerce_service.models import StockStatus
from services.commerce_service.services.stock_aggregator import (
    LOW_STOCK_THRESHOLD,
    StockSnapshot,
    aggregate,
    available_quantity,
    classify_stock,
    stock_fields,
)


def _row(stock_qty, reserved_qty=0, is_active=True):
    return SimpleNamespace(
        stock_qty=stock_qty, reserved_qty=reserved_qty, is_active=is_active
    )


# ---------------------------------------------------------------------------
# classify_stock
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize(
    "total, expected",
    [
        (0, StockStatus.OUT_OF_STOCK),
        (1, StockStatus.LOW_STOCK),
        (LOW_STOCK_THRESHOLD, StockStatus.LOW_STOCK),
        (LOW_STOCK_THRESHOLD + 1, StockStatus.IN_STOCK),
        (1000, StockStatus.IN_STOCK),
    ],
)
def test_classify_stock_bands(total, expected):
    """0 is out of stock, 1-5 low stock, above 5 in stock."""
    assert classify_stock(total) == expected


# ---------------------------------------------------------------------------
# available_quantity / aggregate
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_available_quantity_never_negative():
    """Reserved beyond on-hand contributes zero, not a negative amount."""
    assert available_quantity(_row(3, 7)) == 0
    assert available_quantity(_row(10, 4)) == 6


@pytest.mark.unit
def test_inactive_rows_contribute_nothing():
    """A deactivated store row is excluded regardless of its quantities."""
    assert available_quantity(_row(50, 0, is_active=False)) == 0


@pytest.mark.unit
def test_aggregate_sums_active_rows_only():
    """Sum of max(stock - reserved, 0) over active rows."""
    snapshot = aggregate(
        [
            _row(10, 2),  # 8
            _row(3, 0),  # 3
            _row(2, 5),  # 0, over-reserved
            _row(40, 0, is_active=False),  # ignored
        ]
    )

    assert snapshot.total_available == 11
    assert snapshot.status == StockStatus.IN_STOCK
    assert snapshot.has_stock is True


@pytest.mark.unit
def test_aggregate_of_nothing_is_out_of_stock():
    """No rows means zero stock."""
    snapshot = aggregate([])

    assert snapshot == StockSnapshot(0, StockStatus.OUT_OF_STOCK)
    assert snapshot.has_stock is False


@pytest.mark.unit
def test_aggregate_is_deterministic():
    """Reducing the same rows twice yields the same snapshot."""
    rows = [_row(4, 1), _row(2, 0)]
    assert aggregate(rows) == aggregate(rows)


# ---------------------------------------------------------------------------
# stock_fields
# ---------------------------------------------------------------------------


@pytest.mark.unit
@pytest.mark.parametrize("total", [0, 1, 5, 6, 42])
def test_stock_fields_are_derived_from_quantity(total):
    """Status and has_stock always follow from the quantity."""
    fields = stock_fields(total)

    assert fields["stock_quantity"] == total
    assert fields["stock_status"] == classify_stock(total)
    assert fields["has_stock"] is (total > 0)


@pytest.mark.unit
def test_stock_fields_clamps_negative_totals():
    """A negative total is written as zero."""
    assert stock_fields(-3)["stock_quantity"] == 0
