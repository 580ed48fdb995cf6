"""
Valuation engine tests.

Tests cover:
- Moving average on receipt; outbound kinds never move the average
- Quantity conservation per stock line
- Period window: totals count in-window only, quantity accumulates to period_end
- Emit filter and output order
- Negative-stock tolerance
- on_hand sees lines the emit filter hides
"""

from decimal import Decimal

from hypothesis import HealthCheck, given, settings
from hypothesis import strategies as st

from inventory_engines.valuation import compute_stock, on_hand
from inventory_kernel.domain.transaction import StockLineKey, TransactionKind

from tests.conftest import BRANCH, OTHER_BRANCH

PURCHASE = TransactionKind.PURCHASE
OPENING = TransactionKind.OPENING_STOCK
ISSUE = TransactionKind.ISSUE
RETURN = TransactionKind.RETURN
DAMAGE = TransactionKind.DAMAGE


class TestWorkedExample:
    def test_purchase_issue_return_damage_sequence(self, make_tx):
        issue = make_tx(ISSUE, 6, date="2024-05-03", issued_to_id="E1")
        txs = [
            make_tx(PURCHASE, 10, date="2024-05-01", unit_price=5),
            make_tx(PURCHASE, 5, date="2024-05-02", unit_price=8),
            issue,
            make_tx(RETURN, 2, date="2024-05-04", returned_issue_id=issue.id),
            make_tx(DAMAGE, 1, date="2024-05-05"),
        ]

        [line] = compute_stock(txs)

        assert line.quantity == Decimal("10")
        assert line.avg_value == Decimal("6")
        assert line.total_purchased == Decimal("15")
        assert line.total_issued == Decimal("4")
        assert line.asset_value == Decimal("60")

    def test_intermediate_average_after_second_purchase(self, make_tx):
        txs = [
            make_tx(PURCHASE, 10, unit_price=5),
            make_tx(PURCHASE, 5, unit_price=8),
        ]
        [line] = compute_stock(txs)
        assert line.quantity == Decimal("15")
        assert line.avg_value == Decimal("6")


class TestAverageCost:
    def test_outbound_kinds_leave_average_unchanged(self, make_tx):
        base = [
            make_tx(OPENING, 4, unit_price=10),
            make_tx(PURCHASE, 6, unit_price=15),
        ]
        [before] = compute_stock(base)

        issue = make_tx(ISSUE, 3)
        after_txs = base + [
            issue,
            make_tx(RETURN, 1, returned_issue_id=issue.id),
            make_tx(DAMAGE, 2),
        ]
        [after] = compute_stock(after_txs)

        assert before.avg_value == Decimal("13")
        assert after.avg_value == before.avg_value
        assert after.quantity == Decimal("6")

    def test_receipt_into_zero_result_leaves_average_unchanged(self, make_tx):
        txs = [
            make_tx(PURCHASE, 5, unit_price=4),
            make_tx(ISSUE, 10),
            make_tx(PURCHASE, 5, unit_price=100),
        ]
        [line] = compute_stock(txs)
        assert line.quantity == Decimal("0")
        assert line.avg_value == Decimal("4")

    def test_receipt_without_price_counts_as_zero_cost(self, make_tx):
        txs = [
            make_tx(PURCHASE, 10, unit_price=6),
            make_tx(OPENING, 10, unit_price=None),
        ]
        [line] = compute_stock(txs)
        assert line.avg_value == Decimal("3")


class TestPeriodWindow:
    def test_totals_only_count_in_window(self, make_tx):
        txs = [
            make_tx(PURCHASE, 10, date="2024-03-15", unit_price=5),
            make_tx(ISSUE, 2, date="2024-03-20"),
            make_tx(PURCHASE, 4, date="2024-04-10", unit_price=5),
            make_tx(ISSUE, 3, date="2024-04-11"),
        ]
        [line] = compute_stock(txs, period_start="2024-04-01", period_end="2025-03-31")

        assert line.quantity == Decimal("9")
        assert line.total_purchased == Decimal("4")
        assert line.total_issued == Decimal("3")

    def test_transactions_after_period_end_are_ignored(self, make_tx):
        txs = [
            make_tx(PURCHASE, 10, date="2024-03-15", unit_price=5),
            make_tx(PURCHASE, 10, date="2024-04-15", unit_price=20),
        ]
        [line] = compute_stock(txs, period_end="2024-03-31")
        assert line.quantity == Decimal("10")
        assert line.avg_value == Decimal("5")

    def test_return_in_window_reduces_total_issued(self, make_tx):
        issue = make_tx(ISSUE, 5, date="2024-03-30")
        txs = [
            make_tx(PURCHASE, 10, date="2024-03-01", unit_price=1),
            issue,
            make_tx(RETURN, 2, date="2024-04-02", returned_issue_id=issue.id),
        ]
        [line] = compute_stock(txs, period_start="2024-04-01")
        assert line.total_issued == Decimal("-2")
        assert line.quantity == Decimal("7")


class TestEmitAndOrdering:
    def test_line_with_no_stock_and_no_window_activity_is_hidden(self, make_tx):
        txs = [
            make_tx(PURCHASE, 5, date="2024-03-01", unit_price=2),
            make_tx(ISSUE, 5, date="2024-03-02"),
        ]
        assert compute_stock(txs, period_start="2024-04-01") == []

    def test_damage_only_shortfall_is_hidden_but_visible_to_on_hand(self, make_tx):
        txs = [make_tx(DAMAGE, 3)]
        key = StockLineKey(BRANCH, "Stationery", "Writing", "Blue pen")
        assert compute_stock(txs) == []
        assert on_hand(txs, key) == Decimal("-3")

    def test_lines_come_out_in_first_seen_order(self, make_tx):
        txs = [
            make_tx(PURCHASE, 1, date="2024-05-02", unit_price=1, item_name="Stapler"),
            make_tx(PURCHASE, 1, date="2024-05-01", unit_price=1, item_name="Eraser"),
            make_tx(PURCHASE, 1, date="2024-05-03", unit_price=1, item_name="Blue pen"),
        ]
        names = [line.item_name for line in compute_stock(txs)]
        assert names == ["Eraser", "Stapler", "Blue pen"]

    def test_same_date_ordered_by_created_at(self, make_tx):
        first = make_tx(PURCHASE, 2, date="2024-05-01", unit_price=10)
        second = make_tx(ISSUE, 2, date="2024-05-01")
        third = make_tx(PURCHASE, 2, date="2024-05-01", unit_price=20)

        [line] = compute_stock([third, second, first])
        # issue empties the line before the second receipt
        assert line.avg_value == Decimal("20")

    def test_branch_filter(self, make_tx):
        txs = [
            make_tx(PURCHASE, 3, unit_price=1, branch_id=BRANCH),
            make_tx(PURCHASE, 7, unit_price=1, branch_id=OTHER_BRANCH),
        ]
        [line] = compute_stock(txs, branch_id=OTHER_BRANCH)
        assert line.branch_id == OTHER_BRANCH
        assert line.quantity == Decimal("7")

    def test_unit_follows_latest_transaction(self, make_tx):
        txs = [
            make_tx(PURCHASE, 1, unit_price=1, unit="box"),
            make_tx(PURCHASE, 1, unit_price=1, unit="pcs"),
        ]
        [line] = compute_stock(txs)
        assert line.unit == "pcs"


class TestNegativeStock:
    def test_issue_without_stock_yields_negative_line(self, make_tx):
        [line] = compute_stock([make_tx(ISSUE, 4)])
        assert line.quantity == Decimal("-4")
        assert line.is_negative
        assert line.total_issued == Decimal("4")


# =============================================================================
# Property tests
# =============================================================================

quantities = st.integers(min_value=1, max_value=500)
prices = st.integers(min_value=0, max_value=10_000)

# make_tx only hands out increasing created_at values; safe to share across examples
FIXTURE_OK = [HealthCheck.function_scoped_fixture]


class TestValuationProperties:
    @settings(max_examples=100, deadline=None, suppress_health_check=FIXTURE_OK)
    @given(receipts=st.lists(st.tuples(quantities, prices), min_size=1, max_size=12))
    def test_average_equals_weighted_mean_of_receipts(self, make_tx, receipts):
        txs = [make_tx(PURCHASE, q, unit_price=p) for q, p in receipts]
        [line] = compute_stock(txs)

        total_qty = sum(Decimal(q) for q, _ in receipts)
        total_value = sum(Decimal(q) * Decimal(p) for q, p in receipts)
        expected = total_value / total_qty

        assert abs(line.avg_value - expected) < Decimal("1e-18")
        assert line.quantity == total_qty

    @settings(max_examples=100, deadline=None, suppress_health_check=FIXTURE_OK)
    @given(
        moves=st.lists(
            st.tuples(st.sampled_from([PURCHASE, ISSUE, RETURN, DAMAGE]), quantities),
            min_size=1,
            max_size=25,
        )
    )
    def test_quantity_is_conserved(self, make_tx, moves):
        txs = [
            make_tx(kind, q, unit_price=3 if kind.is_inbound else None)
            for kind, q in moves
        ]
        key = StockLineKey(BRANCH, "Stationery", "Writing", "Blue pen")

        inbound = sum((Decimal(q) for k, q in moves if k in (PURCHASE, RETURN)), Decimal(0))
        outbound = sum((Decimal(q) for k, q in moves if k in (ISSUE, DAMAGE)), Decimal(0))

        assert on_hand(txs, key) == inbound - outbound
        for line in compute_stock(txs):
            assert line.quantity == inbound - outbound

    @settings(max_examples=50, deadline=None, suppress_health_check=FIXTURE_OK)
    @given(
        receipts=st.lists(st.tuples(quantities, prices), min_size=1, max_size=6),
        outbound=st.lists(
            st.tuples(st.sampled_from([ISSUE, RETURN, DAMAGE]), quantities),
            max_size=8,
        ),
    )
    def test_outbound_after_receipts_never_moves_average(self, make_tx, receipts, outbound):
        inbound_txs = [make_tx(PURCHASE, q, unit_price=p) for q, p in receipts]
        [baseline] = compute_stock(inbound_txs)

        txs = inbound_txs + [make_tx(kind, q) for kind, q in outbound]
        lines = compute_stock(txs)
        for line in lines:
            assert line.avg_value == baseline.avg_value

    @settings(max_examples=50, deadline=None, suppress_health_check=FIXTURE_OK)
    @given(
        receipts=st.lists(st.tuples(quantities, prices), min_size=1, max_size=8),
    )
    def test_result_independent_of_input_order(self, make_tx, receipts):
        txs = [make_tx(PURCHASE, q, unit_price=p) for q, p in receipts]
        assert compute_stock(list(reversed(txs))) == compute_stock(txs)
