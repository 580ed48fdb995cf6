"""
ReturnService tests.

Tests cover:
- Return requests: one pending per issue, not for fully used issues
- record_return links to the issue and completes the pending request
- consumed + returned never exceeds the issued quantity
- Consumption logs denormalise the issue and tolerate unknown links
"""

from decimal import Decimal
from uuid import uuid4

import pytest

from inventory_kernel.domain.transaction import LedgerTransaction, TransactionKind
from inventory_kernel.domain.workflow import RequestType, ReturnRequestStatus
from inventory_kernel.exceptions import (
    DuplicatePendingRequestError,
    IssueNotFoundError,
    QuantityExceedsRemainingError,
    StockLineMismatchError,
)
from inventory_kernel.selectors.ledger_selector import LedgerSelector
from inventory_kernel.services.return_service import ReturnService

from tests.conftest import BRANCH


@pytest.fixture
def service(session, deterministic_clock, store):
    return ReturnService(session, deterministic_clock, store, return_prefix="Returned by")


@pytest.fixture
def issue(store):
    tx = LedgerTransaction(
        id=uuid4(),
        date="2024-05-02",
        created_at=store.next_created_at(),
        branch_id=BRANCH,
        kind=TransactionKind.ISSUE,
        category="Sports",
        sub_category="Balls",
        item_name="Football",
        quantity=Decimal("10"),
        unit="pcs",
        issued_to="E7 (Asha)",
        issued_to_id="E7",
    )
    store.append(tx)
    return tx


class TestReturnRequests:
    def test_submit_defaults_from_issue(self, service, issue):
        request = service.submit_request(issue.id, employee_id="", item_name="")

        assert request.employee_id == "E7"
        assert request.item_name == "Football"
        assert request.branch_id == BRANCH
        assert request.status == ReturnRequestStatus.PENDING
        assert service.status(issue).has_pending_return_request

    def test_one_pending_request_per_issue(self, service, issue):
        service.submit_request(issue.id, "E7", "Football", requested_quantity=2)
        with pytest.raises(DuplicatePendingRequestError):
            service.submit_request(issue.id, "E7", "Football")

    def test_no_request_once_nothing_remains(self, service, issue):
        service.record_consumption(issue.id, 10)
        with pytest.raises(QuantityExceedsRemainingError):
            service.submit_request(issue.id, "E7", "Football")

    def test_unknown_issue(self, service):
        with pytest.raises(IssueNotFoundError):
            service.submit_request(uuid4(), "E7", "Football")


class TestRecordReturn:
    def test_return_copies_issue_key_and_links_back(self, service, issue):
        outcome = service.record_return(issue.id, 3, date="2024-05-10")
        tx = outcome.transaction

        assert tx.kind == TransactionKind.RETURN
        assert tx.returned_issue_id == issue.id
        assert tx.issued_to_id == "E7"
        assert tx.issued_to == "Returned by E7"
        assert tx.key == issue.key
        assert tx.date == "2024-05-10"
        assert service.status(issue).remaining == Decimal("7")

    def test_return_completes_pending_request(self, service, issue, session):
        request = service.submit_request(issue.id, "E7", "Football", requested_quantity=4)

        outcome = service.record_return(issue.id, 4)

        [completed] = outcome.completed_requests
        assert completed.id == request.id
        assert completed.status == ReturnRequestStatus.COMPLETED
        assert completed.completed_at is not None

        selector = LedgerSelector(session)
        [stored] = selector.return_requests(issue_transaction_id=issue.id)
        assert stored.status == ReturnRequestStatus.COMPLETED
        audit = selector.resolution_for(RequestType.RETURN, request.id)
        assert audit.transaction_id == outcome.transaction.id
        assert not service.status(issue).has_pending_return_request

    def test_return_beyond_remaining_is_rejected(self, service, issue, store):
        service.record_consumption(issue.id, 8)
        with pytest.raises(QuantityExceedsRemainingError) as exc_info:
            service.record_return(issue.id, 3)
        assert Decimal(exc_info.value.remaining) == Decimal("2")
        assert len(store.list_all()) == 1

    def test_return_against_non_issue(self, service, store):
        with pytest.raises(IssueNotFoundError):
            service.record_return(uuid4(), 1)

    def test_unlinked_return_is_recorded_and_logged(self, service, issue, captured_logs):
        orphan = LedgerTransaction(
            id=uuid4(),
            date="2024-05-03",
            created_at=1,
            branch_id=BRANCH,
            kind=TransactionKind.RETURN,
            category="Sports",
            sub_category="Balls",
            item_name="Football",
            quantity=Decimal("1"),
            returned_issue_id=uuid4(),
        )
        outcome = service.append_return(orphan)

        assert not outcome.linked
        assert service.status(issue).remaining == Decimal("10")
        assert any(r["message"] == "linkage_unresolved" for r in captured_logs())

    def test_linked_return_stays_on_the_issue_line(self, service, issue, store):
        stray = LedgerTransaction(
            id=uuid4(),
            date="2024-05-03",
            created_at=store.next_created_at(),
            branch_id=BRANCH,
            kind=TransactionKind.RETURN,
            category="Books",
            sub_category="Text",
            item_name="Atlas",
            quantity=Decimal("2"),
            returned_issue_id=issue.id,
        )
        with pytest.raises(StockLineMismatchError) as exc_info:
            service.append_return(stray)

        assert exc_info.value.expected == f"{BRANCH}/Sports/Balls/Football"
        assert len(store.list_all()) == 1
        assert service.status(issue).remaining == Decimal("10")


class TestConsumption:
    def test_consumption_reduces_remaining(self, service, issue):
        log = service.record_consumption(issue.id, "2.5", remarks=" used in match ")

        assert log.quantity_consumed == Decimal("2.5")
        assert log.branch_id == BRANCH
        assert log.employee_id == "E7"
        assert log.item_name == "Football"
        assert log.remarks == "used in match"
        assert log.date == "2024-06-01"
        assert service.status(issue).remaining == Decimal("7.5")

    def test_consumed_plus_returned_never_exceeds_issue(self, service, issue):
        service.record_return(issue.id, 6)
        service.record_consumption(issue.id, 4)
        with pytest.raises(QuantityExceedsRemainingError):
            service.record_consumption(issue.id, "0.5")

        status = service.status(issue)
        assert status.returned + status.consumed == issue.quantity

    def test_unknown_issue_is_tolerated(self, service, captured_logs):
        log = service.record_consumption(uuid4(), 1)
        assert log.branch_id == ""
        assert any(
            r["message"] == "linkage_unresolved" and r["record"] == "consumption_log"
            for r in captured_logs()
        )


class TestCorrections:
    def test_issue_cannot_drop_below_what_was_used(self, service, issue, store):
        service.record_consumption(issue.id, 4)
        service.record_return(issue.id, 3)

        with pytest.raises(QuantityExceedsRemainingError):
            store.update(issue.id, guard=service.check_correction, quantity=6)
        assert store.get(issue.id).quantity == Decimal("10")

        store.update(issue.id, guard=service.check_correction, quantity=7)
        assert service.status(store.get(issue.id)).remaining == Decimal("0")

    def test_issue_keeps_its_line_once_stock_came_back(self, service, issue, store):
        service.record_return(issue.id, 2)
        with pytest.raises(StockLineMismatchError):
            store.update(issue.id, guard=service.check_correction, item_name="Cricket ball")
        assert store.get(issue.id).item_name == "Football"

    def test_issue_with_only_consumption_can_be_renamed(self, service, issue, store):
        service.record_consumption(issue.id, 2)
        renamed = store.update(issue.id, guard=service.check_correction, item_name="Cricket ball")
        assert renamed.item_name == "Cricket ball"

    def test_return_cannot_grow_past_the_issue(self, service, issue, store):
        returned = service.record_return(issue.id, 4).transaction
        service.record_consumption(issue.id, 5)

        with pytest.raises(QuantityExceedsRemainingError) as exc_info:
            store.update(returned.id, guard=service.check_correction, quantity=6)
        assert Decimal(exc_info.value.remaining) == Decimal("5")

        store.update(returned.id, guard=service.check_correction, quantity=5)
        assert service.status(issue).remaining == Decimal("0")
