"""
AdjustmentService tests: damage reports and their resolution.
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_engines.valuation import compute_stock, on_hand
from inventory_kernel.domain.transaction import (
    LedgerTransaction,
    StockLineKey,
    TransactionKind,
)
from inventory_kernel.domain.workflow import RequestDecision, RequestStatus, RequestType
from inventory_kernel.exceptions import (
    QuantityExceedsStockError,
    RequestAlreadyResolvedError,
    RequestNotFoundError,
)
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.adjustment_service import AdjustmentService

from tests.conftest import BRANCH

KEY = StockLineKey(BRANCH, "Science Lab", "Glassware", "Beaker")


@pytest.fixture
def stocked(store):
    store.append(
        LedgerTransaction(
            id=uuid4(),
            date="2024-05-01",
            created_at=store.next_created_at(),
            branch_id=BRANCH,
            kind=TransactionKind.OPENING_STOCK,
            category=KEY.category,
            sub_category=KEY.sub_category,
            item_name=KEY.item_name,
            quantity=Decimal("8"),
            unit_price=Decimal("25"),
            total_value=Decimal("200"),
        )
    )
    return store


@pytest.fixture
def service(session, deterministic_clock, stocked):
    return AdjustmentService(
        session, deterministic_clock, stocked, damage_label="Written off",
    )


def _report(service, quantity=3):
    return service.submit(
        BRANCH, KEY.category, KEY.sub_category, KEY.item_name, quantity, reason="Broken in lab",
    )


class TestSubmit:
    def test_report_within_stock(self, service):
        request = _report(service)
        assert request.status == RequestStatus.PENDING
        assert request.reason == "Broken in lab"

    def test_report_beyond_stock_is_rejected(self, service):
        with pytest.raises(QuantityExceedsStockError) as exc_info:
            _report(service, quantity=9)
        assert Decimal(exc_info.value.available) == Decimal("8")


class TestResolve:
    def test_approval_appends_damage(self, service, stocked, session):
        request = _report(service)

        resolution = service.resolve(request.id, RequestDecision.APPROVE)

        damage = resolution.transaction
        assert damage.kind == TransactionKind.DAMAGE
        assert damage.issued_to == "Written off"
        assert damage.source_request_id == request.id
        assert on_hand(stocked.list_all(), KEY) == Decimal("5")

        [line] = compute_stock(stocked.list_all())
        assert line.total_issued == Decimal("0")
        assert line.avg_value == Decimal("25")

        selector = LedgerSelector(session)
        retained = selector.get_adjustment_request(request.id)
        assert retained.status == RequestStatus.APPROVED
        assert retained.resolved_at is not None
        assert selector.resolution_for(RequestType.ADJUSTMENT, request.id).transaction_id == damage.id

    def test_rejection_keeps_request_and_ledger(self, service, stocked, session):
        request = _report(service)

        resolution = service.resolve(request.id, RequestDecision.REJECT)

        assert resolution.transaction is None
        assert len(stocked.list_all()) == 1
        retained = LedgerSelector(session).get_adjustment_request(request.id)
        assert retained.status == RequestStatus.REJECTED

    def test_resolved_request_cannot_be_resolved_again(self, service, stocked):
        request = _report(service)
        service.resolve(request.id, RequestDecision.REJECT)

        with pytest.raises(RequestAlreadyResolvedError):
            service.resolve(request.id, RequestDecision.APPROVE)
        assert len(stocked.list_all()) == 1

    def test_unknown_request(self, service):
        with pytest.raises(RequestNotFoundError):
            service.resolve(uuid4(), RequestDecision.APPROVE)
