"""
StockRequestService tests.

Tests cover:
- Submit / edit / delete while PENDING
- Approval appends ISSUE to the requester and deletes the request
- Override item and quantity on approval
- Insufficient stock: warning, forced approval, negative stock
- Rejection appends nothing
- A second resolution is a conflict
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_engines.valuation import on_hand
from inventory_kernel.domain.transaction import (
    LedgerTransaction,
    StockLineKey,
    TransactionKind,
)
from inventory_kernel.domain.workflow import RequestDecision, RequestStatus, RequestType
from inventory_kernel.exceptions import (
    ImmutableFieldError,
    InsufficientStockWarning,
    InvalidQuantityError,
    RequestAlreadyResolvedError,
    RequestNotFoundError,
)
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.stock_request_service import StockRequestService

from tests.conftest import BRANCH

KEY = StockLineKey(BRANCH, "Stationery", "Writing", "Blue pen")


def _stock(store, quantity, item_name="Blue pen"):
    qty = Decimal(quantity)
    store.append(
        LedgerTransaction(
            id=uuid4(),
            date="2024-05-01",
            created_at=store.next_created_at(),
            branch_id=BRANCH,
            kind=TransactionKind.PURCHASE,
            category="Stationery",
            sub_category="Writing",
            item_name=item_name,
            quantity=qty,
            unit="pcs",
            unit_price=Decimal("5"),
            total_value=qty * 5,
            bill_number="B-1",
        )
    )


@pytest.fixture
def service(session, deterministic_clock, store):
    return StockRequestService(session, deterministic_clock, store)


@pytest.fixture
def selector(session):
    return LedgerSelector(session)


def _submit(service, quantity=4, **overrides):
    fields = dict(
        branch_id=BRANCH,
        employee_id="E7",
        employee_name="Asha",
        category="Stationery",
        sub_category="Writing",
        item_name="Blue pen",
        quantity=quantity,
        unit="pcs",
    )
    fields.update(overrides)
    return service.submit(**fields)


class TestSubmitEditDelete:
    def test_submit_creates_pending_request(self, service, selector):
        request = _submit(service)
        assert request.status == RequestStatus.PENDING
        assert selector.stock_requests(branch_id=BRANCH) == [request]

    def test_submit_rejects_bad_quantity(self, service):
        with pytest.raises(InvalidQuantityError):
            _submit(service, quantity=0)

    def test_edit_changes_item_and_quantity(self, service):
        request = _submit(service)
        edited = service.edit(request.id, item_name="Red pen", quantity=6)
        assert edited.item_name == "Red pen"
        assert edited.quantity == Decimal("6")

    def test_edit_rejects_requester_fields(self, service):
        request = _submit(service)
        with pytest.raises(ImmutableFieldError):
            service.edit(request.id, employee_id="E8")

    def test_delete(self, service, selector):
        request = _submit(service)
        service.delete(request.id)
        assert selector.get_stock_request(request.id) is None

    def test_unknown_request(self, service):
        with pytest.raises(RequestNotFoundError):
            service.delete(uuid4())


class TestResolve:
    def test_approval_issues_to_requester(self, service, store, selector):
        _stock(store, 10)
        request = _submit(service, quantity=4)

        resolution = service.resolve(request.id, RequestDecision.APPROVE)

        issue = resolution.transaction
        assert issue.kind == TransactionKind.ISSUE
        assert issue.quantity == Decimal("4")
        assert issue.issued_to == "E7 (Asha)"
        assert issue.issued_to_id == "E7"
        assert issue.source_request_id == request.id
        assert resolution.request.status == RequestStatus.APPROVED
        assert selector.get_stock_request(request.id) is None
        assert on_hand(store.list_all(), KEY) == Decimal("6")

        audit = selector.resolution_for(RequestType.STOCK, request.id)
        assert audit.outcome == "APPROVED"
        assert audit.transaction_id == issue.id
        assert not audit.forced

    def test_approval_with_overrides(self, service, store):
        _stock(store, 10, item_name="Black pen")
        request = _submit(service, quantity=4)

        resolution = service.resolve(
            request.id, "approve", override_item="Black pen", override_quantity=2,
        )

        assert resolution.transaction.item_name == "Black pen"
        assert resolution.transaction.quantity == Decimal("2")

    def test_rejection_appends_nothing(self, service, store, selector):
        _stock(store, 10)
        request = _submit(service)

        resolution = service.resolve(request.id, RequestDecision.REJECT)

        assert resolution.transaction is None
        assert len(store.list_all()) == 1
        assert selector.get_stock_request(request.id) is None
        assert selector.resolution_for(RequestType.STOCK, request.id).outcome == "REJECTED"

    def test_insufficient_stock_warns(self, service, store, selector):
        _stock(store, 2)
        request = _submit(service, quantity=5)

        with pytest.raises(InsufficientStockWarning) as exc_info:
            service.resolve(request.id, RequestDecision.APPROVE)

        assert Decimal(exc_info.value.available) == Decimal("2")
        assert selector.get_stock_request(request.id).status == RequestStatus.PENDING

    def test_forced_approval_drives_stock_negative(self, service, store, selector):
        _stock(store, 2)
        request = _submit(service, quantity=5)

        resolution = service.resolve(request.id, RequestDecision.APPROVE, force=True)

        assert resolution.forced
        assert on_hand(store.list_all(), KEY) == Decimal("-3")
        assert selector.resolution_for(RequestType.STOCK, request.id).forced

    def test_second_resolution_is_a_conflict(self, service, store, captured_logs):
        _stock(store, 10)
        request = _submit(service)
        service.resolve(request.id, RequestDecision.APPROVE)

        with pytest.raises(RequestAlreadyResolvedError) as exc_info:
            service.resolve(request.id, RequestDecision.REJECT)

        assert exc_info.value.status == "APPROVED"
        assert len(store.list_all()) == 2
        conflicts = [r for r in captured_logs() if r["message"] == "request_resolution_conflict"]
        assert conflicts and conflicts[0]["level"] == "WARNING"

    def test_unknown_request(self, service):
        with pytest.raises(RequestNotFoundError):
            service.resolve(uuid4(), RequestDecision.APPROVE)
