"""
LedgerStore tests.

Tests cover:
- append/list ordering by (date, created_at)
- strictly increasing created_at under a frozen clock
- correction of allowed fields, total_value recomputation
- immutable fields and unknown ids
- source_request_id uniqueness
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import IntegrityError

from inventory_kernel.domain.transaction import LedgerTransaction, TransactionKind
from inventory_kernel.exceptions import (
    ImmutableFieldError,
    InvalidQuantityError,
    TransactionNotFoundError,
)

from tests.conftest import BRANCH


def _tx(store, kind=TransactionKind.PURCHASE, quantity="10", date="2024-05-01", **fields):
    qty = Decimal(quantity)
    price = fields.pop("unit_price", Decimal("5") if kind.is_inbound else None)
    return LedgerTransaction(
        id=uuid4(),
        date=date,
        created_at=store.next_created_at(),
        branch_id=fields.pop("branch_id", BRANCH),
        kind=kind,
        category="Stationery",
        sub_category="Writing",
        item_name=fields.pop("item_name", "Blue pen"),
        quantity=qty,
        unit="pcs",
        unit_price=price,
        total_value=qty * price if price is not None else None,
        **fields,
    )


class TestAppendAndList:
    def test_round_trip(self, store):
        tx = _tx(store, bill_number="B-1")
        assert store.append(tx) == tx.id

        loaded = store.get(tx.id)
        assert loaded == tx

    def test_created_at_strictly_increases_with_frozen_clock(self, store):
        first = _tx(store)
        store.append(first)
        second = _tx(store)
        store.append(second)
        assert second.created_at > first.created_at

    def test_list_orders_by_date_then_created_at(self, store):
        late = _tx(store, date="2024-05-03")
        store.append(late)
        early_a = _tx(store, date="2024-05-01")
        store.append(early_a)
        early_b = _tx(store, date="2024-05-01")
        store.append(early_b)

        assert [t.id for t in store.list_all()] == [early_a.id, early_b.id, late.id]

    def test_list_filters(self, store):
        store.append(_tx(store, date="2024-05-01"))
        store.append(_tx(store, date="2024-06-01"))
        store.append(_tx(store, branch_id="pune"))

        assert len(store.list_all(branch_id=BRANCH)) == 2
        assert len(store.list_all(period_end="2024-05-31")) == 2

    def test_find_unknown_returns_none(self, store):
        assert store.find(uuid4()) is None
        with pytest.raises(TransactionNotFoundError):
            store.get(uuid4())

    def test_source_request_id_is_unique(self, store):
        request_id = uuid4()
        store.append(_tx(store, kind=TransactionKind.ISSUE, source_request_id=request_id))
        with pytest.raises(IntegrityError):
            store.append(_tx(store, kind=TransactionKind.ISSUE, source_request_id=request_id))


class TestCorrections:
    def test_quantity_correction_recomputes_total_value(self, store):
        tx = _tx(store)
        store.append(tx)

        corrected = store.update(tx.id, quantity="12", unit_price="2.5")

        assert corrected.quantity == Decimal("12")
        assert corrected.total_value == Decimal("30")
        assert store.get(tx.id).total_value == Decimal("30")

    def test_text_fields_are_correctable(self, store):
        tx = _tx(store, bill_number="B-1")
        store.append(tx)

        store.update(tx.id, item_name="Black pen", bill_number="B-2", date="2024-05-09")
        loaded = store.get(tx.id)

        assert loaded.item_name == "Black pen"
        assert loaded.bill_number == "B-2"
        assert loaded.date == "2024-05-09"
        assert loaded.created_at == tx.created_at

    def test_outbound_correction_keeps_total_value_empty(self, store):
        tx = _tx(store, kind=TransactionKind.ISSUE)
        store.append(tx)
        assert store.update(tx.id, quantity=3).total_value is None

    @pytest.mark.parametrize("field", ["kind", "branch_id", "created_at", "returned_issue_id"])
    def test_fixed_fields_are_rejected(self, store, field):
        tx = _tx(store)
        store.append(tx)
        with pytest.raises(ImmutableFieldError) as exc_info:
            store.update(tx.id, **{field: "x"})
        assert exc_info.value.fields == [field]

    def test_invalid_corrected_value(self, store):
        tx = _tx(store)
        store.append(tx)
        with pytest.raises(InvalidQuantityError):
            store.update(tx.id, quantity=0)

    def test_unknown_id(self, store):
        with pytest.raises(TransactionNotFoundError):
            store.update(uuid4(), quantity=1)


class TestDelete:
    def test_delete_returns_removed_transaction(self, store):
        tx = _tx(store)
        store.append(tx)

        removed = store.delete(tx.id)

        assert removed.id == tx.id
        assert store.find(tx.id) is None
        with pytest.raises(TransactionNotFoundError):
            store.delete(tx.id)
