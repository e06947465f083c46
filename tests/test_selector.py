import random
import unittest
from decimal import Decimal

from lottoshop.draw.aggregator import SalesTotals, SlotPurchase
from lottoshop.draw.budget import BudgetCalculator
from lottoshop.draw.numbers import NumberEntry
from lottoshop.draw.selector import (
    RANDOM_STRATEGIES,
    FixedStrategyPolicy,
    RandomStrategyPolicy,
    SelectionStrategy,
    WinnerSelector,
)


def _purchase(ticket_id, seller_id, entries, points):
    return SlotPurchase(
        ticket_id=ticket_id,
        seller_id=seller_id,
        entries=tuple(NumberEntry(number, quantity) for number, quantity in entries),
        points=Decimal(points),
    )


def _totals(*purchases):
    totals = SalesTotals()
    for purchase in purchases:
        totals.add(purchase)
    return totals


class SelectorTestCase(unittest.TestCase):
    def setUp(self):
        self.selector = WinnerSelector()
        self.budgets = BudgetCalculator()

    def _select(self, totals, percentage, **kwargs):
        budget = self.budgets.compute(totals.total_points, Decimal(percentage))
        excluded = self.budgets.prescreen(totals.quantities, budget)
        return self.selector.select(totals, budget, excluded=excluded, **kwargs)


class TestInvestmentCeiling(SelectorTestCase):
    def test_ceiling_follows_units_sold_not_points(self):
        totals = _totals(_purchase(1, 1, [("1007", 10)], "3600"))
        self.assertEqual(self.selector.ceiling(totals, 1, 2), 0)
        self.assertEqual(self.selector.ceiling(totals, 1, 1), 0)

        bulk = _totals(_purchase(1, 1, [("1007", 10), ("5900", 890)], "180"))
        # 900 units sold: floor(900 * 2 / 180) and floor(900 / 180)
        self.assertEqual(self.selector.ceiling(bulk, 1, 2), 10)
        self.assertEqual(self.selector.ceiling(bulk, 1, 1), 5)
        self.assertEqual(self.selector.ceiling(bulk, 2, 2), 0)

    def test_priority_seller_above_ceiling_does_not_win(self):
        totals = _totals(_purchase(1, 1, [("1007", 10)], "3600"))
        selection = self._select(totals, 100, priority_sellers=[1])
        self.assertEqual(selection.capacity, 20)
        self.assertEqual(selection.winners, [])


class TestQuantityStrategy(SelectorTestCase):
    def test_descending_quantity_with_prefix_blocking(self):
        # the 59xx and 39xx bulk entries are pre-screened but count as units sold
        totals = _totals(
            _purchase(
                1, 1, [("1007", 3), ("1011", 2), ("1012", 1), ("3022", 1), ("5900", 180)], "3600"
            ),
            _purchase(2, 2, [("5099", 4), ("3950", 360)], "1800"),
        )
        selection = self._select(totals, 50, strategy=SelectionStrategy.QUANTITY_DESC)
        # "1007" x3 is above seller 1's ceiling floor(187 * 2 / 180) = 2
        self.assertEqual([w.number for w in selection.winners], ["5099", "1011", "3022"])
        self.assertEqual(selection.capacity, 15)
        self.assertEqual(selection.used_units, 7)
        self.assertEqual(selection.remaining_capacity, 8)
        self.assertEqual(selection.total_payout, 7 * 180)

    def test_numbers_above_remaining_capacity_are_skipped(self):
        totals = _totals(
            _purchase(1, 1, [("1007", 4), ("3011", 3), ("5022", 1), ("5900", 400)], "1800")
        )
        selection = self._select(totals, 50, strategy=SelectionStrategy.QUANTITY_DESC)
        self.assertEqual([w.number for w in selection.winners], ["1007", "5022"])
        self.assertEqual(selection.remaining_capacity, 0)

    def test_partial_payout_honours_what_is_left(self):
        totals = _totals(
            _purchase(1, 1, [("1007", 4), ("3011", 3), ("5022", 1), ("5900", 400)], "1800")
        )
        self.selector = WinnerSelector(partial=True)
        selection = self._select(totals, 50, strategy=SelectionStrategy.QUANTITY_DESC)
        self.assertEqual(
            [(w.number, w.quantity, w.payout) for w in selection.winners],
            [("1007", 4, 720), ("3011", 1, 180)],
        )
        self.assertLessEqual(selection.total_payout, 900)

    def test_aggregated_quantity_is_reserved(self):
        totals = _totals(
            _purchase(1, 1, [("1007", 1), ("5900", 200)], "1800"),
            _purchase(2, 2, [("1007", 2), ("3900", 200)], "1800"),
        )
        selection = self._select(totals, 50, strategy=SelectionStrategy.QUANTITY_DESC)
        # each seller alone allows 2 units; the number's ceiling is their sum
        self.assertEqual(len(selection.winners), 1)
        self.assertEqual(selection.winners[0].quantity, 3)
        self.assertEqual(selection.winners[0].payout, 540)


class TestVolumeStrategies(SelectorTestCase):
    def setUp(self):
        super().setUp()
        self.totals = _totals(
            _purchase(1, 1, [("1007", 3), ("3011", 1), ("5900", 266)], "4500"),
            _purchase(2, 2, [("5055", 1), ("3900", 400)], "4500"),
        )

    def test_descending_volume_uses_double_ceiling(self):
        selection = self._select(self.totals, 100, strategy=SelectionStrategy.VOLUME_DESC)
        # seller 2 sold more; seller 1 sold 270 units, floor(270 * 2 / 180) = 3
        self.assertEqual([w.number for w in selection.winners], ["5055", "1007", "3011"])

    def test_ascending_volume_uses_tightened_ceiling(self):
        selection = self._select(self.totals, 100, strategy=SelectionStrategy.VOLUME_ASC)
        # seller 1 is capped at floor(270 / 180) = 1, so "1007" x3 is skipped
        self.assertEqual([w.number for w in selection.winners], ["3011", "5055"])
        self.assertEqual(selection.strategy, SelectionStrategy.VOLUME_ASC)


class TestLowestQuantityStrategy(SelectorTestCase):
    def test_widens_to_forty_percent_when_thirty_is_not_reached(self):
        totals = _totals(
            _purchase(1, 1, [("1001", 10), ("1102", 10), ("1203", 10), ("3004", 20)], "10000")
        )
        selection = self._select(totals, 100, strategy=SelectionStrategy.LOWEST_QUANTITY)
        self.assertEqual([w.number for w in selection.winners], ["1001", "1102"])
        self.assertEqual(selection.capacity, 22)
        self.assertEqual(selection.used_units, 20)

    def test_keeps_thirty_percent_target_when_met(self):
        totals = _totals(_purchase(1, 1, [("1001", 8), ("1102", 8), ("3004", 9)], "10000"))
        selection = self._select(totals, 100, strategy=SelectionStrategy.LOWEST_QUANTITY)
        self.assertEqual([w.number for w in selection.winners], ["1001", "1102"])
        self.assertEqual(selection.capacity, 16)
        self.assertEqual(selection.remaining_capacity, 0)


class TestPriorityMode(SelectorTestCase):
    def setUp(self):
        super().setUp()
        self.totals = _totals(
            _purchase(1, 2, [("1007", 5), ("5900", 200)], "1800"),
            _purchase(2, 1, [("1011", 2), ("3033", 3), ("3900", 400)], "1800"),
        )

    def test_priority_sellers_are_served_first(self):
        selection = self._select(self.totals, 100, priority_sellers=[1])
        self.assertEqual(selection.strategy, SelectionStrategy.PRIORITY)
        self.assertEqual([w.number for w in selection.winners], ["1011", "3033"])

    def test_other_sellers_fill_remaining_capacity(self):
        totals = _totals(
            _purchase(1, 2, [("5007", 1), ("5900", 200)], "1800"),
            _purchase(2, 1, [("1011", 2), ("3033", 3), ("3900", 400)], "1800"),
        )
        selection = self._select(totals, 100, priority_sellers=[1])
        # seller 2 falls back to floor(201 / 180) = 1 per entry
        self.assertEqual([w.number for w in selection.winners], ["1011", "3033", "5007"])

    def test_strategy_is_ignored_in_priority_mode(self):
        selection = self._select(
            self.totals,
            100,
            priority_sellers=[1],
            strategy=SelectionStrategy.LOWEST_QUANTITY,
        )
        self.assertEqual(selection.strategy, SelectionStrategy.PRIORITY)

    def test_strategy_required_without_priority(self):
        with self.assertRaises(ValueError):
            self._select(self.totals, 100)


class TestStrategyPolicies(unittest.TestCase):
    def test_random_policy_is_reproducible(self):
        first = [RandomStrategyPolicy(random.Random(3)).choose() for _ in range(5)]
        second = [RandomStrategyPolicy(random.Random(3)).choose() for _ in range(5)]
        self.assertEqual(first, second)
        self.assertTrue(all(choice in RANDOM_STRATEGIES for choice in first))

    def test_policies_reject_priority(self):
        with self.assertRaises(ValueError):
            FixedStrategyPolicy(SelectionStrategy.PRIORITY)
        with self.assertRaises(ValueError):
            RandomStrategyPolicy(random.Random(1), [SelectionStrategy.PRIORITY])

    def test_fixed_policy(self):
        policy = FixedStrategyPolicy(SelectionStrategy.VOLUME_DESC)
        self.assertEqual(policy.choose(), SelectionStrategy.VOLUME_DESC)


if __name__ == "__main__":
    unittest.main()
