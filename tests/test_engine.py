import itertools
import random
import unittest
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from lottoshop.config import DrawSettings
from lottoshop.draw.engine import DrawRequest, DrawSettlementEngine, DrawStatus
from lottoshop.draw.errors import DrawTimeoutError, InvalidDrawRequestError
from lottoshop.draw.lock import DrawLock
from lottoshop.draw.numbers import prefix_of, series_of
from lottoshop.draw.selector import RANDOM_STRATEGIES, FixedStrategyPolicy, SelectionStrategy
from lottoshop.draw.validator import collect_violations
from lottoshop.models import Base, DrawResult, Seller, Ticket, WinPercentage

DRAW_DATE = date(2025, 1, 10)
# 12:00 in Asia/Kolkata
SALE_TIME = datetime(2025, 1, 10, 6, 30, tzinfo=timezone.utc)


class EngineTestCase(unittest.TestCase):
    def setUp(self):
        self.engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
        Base.metadata.create_all(self.engine)
        self.Session = sessionmaker(bind=self.engine, future=True, expire_on_commit=False)
        self.lock = DrawLock()

    def tearDown(self):
        self.engine.dispose()

    def _settle(self, slot="02:00 PM", *, seed=7, strategy=SelectionStrategy.QUANTITY_DESC, **kwargs):
        priority_seller_id = kwargs.pop("priority_seller_id", None)
        with self.Session.begin() as session:
            engine = DrawSettlementEngine(
                session,
                settings=DrawSettings(),
                rng=random.Random(seed),
                strategy_policy=FixedStrategyPolicy(strategy),
                lock=self.lock,
                **kwargs,
            )
            return engine.settle(DrawRequest(DRAW_DATE, slot, priority_seller_id))

    def _seed(self, percentage, tickets, priority_names=()):
        """Create sellers and tickets; ``tickets`` is ``[(seller, numbers, points)]``."""

        with self.Session.begin() as session:
            sellers = {}
            for name, _numbers, _points in tickets:
                if name not in sellers:
                    sellers[name] = Seller(user_name=name, priority=name in priority_names)
                    session.add(sellers[name])
            session.flush()
            for name, numbers, points in tickets:
                session.add(
                    Ticket(
                        seller=sellers[name],
                        draw_times=["02:00 PM"],
                        ticket_numbers=numbers,
                        total_points=points,
                        created_at=SALE_TIME,
                    )
                )
            session.add(WinPercentage(percentage=percentage))
        return {name: seller.id for name, seller in sellers.items()}

    def _count_results(self):
        with self.Session() as session:
            return session.scalar(select(func.count()).select_from(DrawResult))

    def assertStructurallyValid(self, result):
        entries = result.winning_numbers
        self.assertEqual(len(entries), 30)
        for series in (10, 30, 50):
            numbers = [e["number"] for e in entries if series_of(e["number"]) == series]
            self.assertEqual(len(numbers), 10)
            self.assertEqual(len({prefix_of(n) for n in numbers}), 10)
        for previous, current in zip(entries, entries[1:]):
            self.assertNotEqual(series_of(previous["number"]), series_of(current["number"]))


class TestSettlement(EngineTestCase):
    def test_example_scenario(self):
        self._seed(50, [("shop", [{"ticketNumber": "1007", "quantity": 5}], "1000")])
        outcome = self._settle()
        self.assertEqual(outcome.status, DrawStatus.GENERATED)
        result = outcome.result
        self.assertStructurallyValid(result)
        self.assertEqual(result.budget, 500)
        self.assertEqual(result.total_points, Decimal("1000"))
        self.assertNotIn("1007", result.numbers)
        self.assertTrue(all(e["quantity"] == 0 for e in result.winning_numbers))
        self.assertEqual(sum(1 for n in result.numbers if series_of(n) == 10), 10)
        prefix_ten = [e for e in result.winning_numbers if prefix_of(e["number"]) == 10]
        self.assertEqual(len(prefix_ten), 1)
        self.assertEqual(prefix_ten[0]["quantity"], 0)
        self.assertEqual(prefix_ten[0]["payout"], 0)

    def test_second_call_reports_already_generated(self):
        self._seed(50, [("shop", "30-11:1", "360")])
        first = self._settle()
        second = self._settle(seed=8)
        self.assertEqual(first.status, DrawStatus.GENERATED)
        self.assertEqual(second.status, DrawStatus.ALREADY_GENERATED)
        self.assertEqual(second.result.id, first.result.id)
        self.assertEqual(second.result.numbers, first.result.numbers)
        self.assertEqual(self._count_results(), 1)

    def test_no_tickets_gives_random_result(self):
        outcome = self._settle("09:00 AM")
        self.assertEqual(outcome.status, DrawStatus.GENERATED)
        self.assertStructurallyValid(outcome.result)
        self.assertEqual(outcome.result.strategy, "random")
        self.assertTrue(all(e["payout"] == 0 for e in outcome.result.winning_numbers))

    def test_same_seed_reproduces_result(self):
        first = self._settle("09:00 AM", seed=21)
        second = self._settle("09:15 AM", seed=21)
        self.assertEqual(first.result.numbers, second.result.numbers)

    def test_winners_stay_within_budget_for_every_strategy(self):
        tickets = [
            ("north", "10-07:3,30-11:2,50-22:1,11-01:4", "900"),
            ("south", "10-07:1,12-45:2,35-35:3,55-05:1", "1440"),
            ("east", "13-13:1,36-00:1,57-57:2", "540"),
        ]
        self._seed(60, tickets)
        for offset, strategy in enumerate(RANDOM_STRATEGIES):
            slot = f"0{2 + offset}:00 PM"
            with self.Session.begin() as session:
                for ticket in session.scalars(select(Ticket)):
                    ticket.draw_times = ticket.draw_times + [slot]
            with self.subTest(strategy=strategy):
                outcome = self._settle(slot, strategy=strategy)
                result = outcome.result
                self.assertStructurallyValid(result)
                self.assertEqual(result.strategy, strategy.value)
                payout = sum(e["payout"] for e in result.winning_numbers if e["quantity"] > 0)
                self.assertLessEqual(payout, result.budget)
                for entry in result.winning_numbers:
                    self.assertEqual(entry["payout"], entry["quantity"] * 180)

    def test_priority_sellers_win_first(self):
        ids = self._seed(
            100,
            [
                ("other", "10-07:2,59-50:180", "360"),
                ("agent", "10-11:1,30-22:1,59-00:180", "360"),
            ],
            priority_names=("agent",),
        )
        outcome = self._settle()
        winners = {e["number"]: e["quantity"] for e in outcome.result.winning_numbers if e["quantity"]}
        self.assertEqual(winners, {"1011": 1, "3022": 1})
        self.assertEqual(outcome.result.strategy, "priority")
        self.assertIn("agent", ids)

    def test_priority_override_replaces_flagged_sellers(self):
        ids = self._seed(
            100,
            [
                ("other", "10-07:2,59-50:180", "360"),
                ("agent", "10-11:1,30-22:1,59-00:180", "360"),
            ],
            priority_names=("agent",),
        )
        outcome = self._settle(priority_seller_id=ids["other"])
        winners = {e["number"] for e in outcome.result.winning_numbers if e["quantity"]}
        self.assertEqual(winners, {"1007", "3022"})

    def test_unknown_override_is_rejected(self):
        with self.assertRaises(InvalidDrawRequestError):
            self._settle(priority_seller_id=999)
        self.assertEqual(self._count_results(), 0)

    def test_blocked_override_is_rejected(self):
        with self.Session.begin() as session:
            seller = Seller(user_name="closed", blocked=True)
            session.add(seller)
        with self.assertRaises(InvalidDrawRequestError):
            self._settle(priority_seller_id=seller.id)
        self.assertEqual(self._count_results(), 0)

    def test_unparseable_tickets_are_reported(self):
        self._seed(50, [("shop", "30-11:1", "360"), ("shop", "??", "180")])
        outcome = self._settle()
        self.assertEqual(outcome.status, DrawStatus.GENERATED)
        self.assertEqual(len(outcome.rejected_ticket_ids), 1)
        self.assertEqual(outcome.result.total_points, Decimal("360"))


class TestConcurrencyGuards(EngineTestCase):
    def test_held_lock_reports_in_progress(self):
        key = DrawLock.key_for(DRAW_DATE, "02:00 PM")
        self.assertTrue(self.lock.acquire(key))
        outcome = self._settle()
        self.assertEqual(outcome.status, DrawStatus.IN_PROGRESS)
        self.assertIsNone(outcome.result)
        self.assertEqual(self._count_results(), 0)
        self.lock.release(key)
        self.assertEqual(self._settle().status, DrawStatus.GENERATED)

    def test_lock_is_released_after_failure(self):
        with self.assertRaises(InvalidDrawRequestError):
            self._settle(priority_seller_id=404)
        self.assertFalse(self.lock.is_locked(DrawLock.key_for(DRAW_DATE, "02:00 PM")))

    def _engine(self, session):
        return DrawSettlementEngine(
            session, settings=DrawSettings(), rng=random.Random(1), lock=self.lock
        )

    def test_lock_is_held_until_the_result_is_committed(self):
        key = DrawLock.key_for(DRAW_DATE, "02:00 PM")
        with self.Session.begin() as session:
            outcome = self._engine(session).settle(DrawRequest(DRAW_DATE, "02:00 PM"))
            self.assertEqual(outcome.status, DrawStatus.GENERATED)
            self.assertTrue(self.lock.is_locked(key))
            self.assertEqual(self._settle().status, DrawStatus.IN_PROGRESS)
        self.assertFalse(self.lock.is_locked(key))
        self.assertEqual(self._count_results(), 1)

    def test_rollback_releases_the_lock(self):
        key = DrawLock.key_for(DRAW_DATE, "02:00 PM")
        with self.Session() as session:
            session.begin()
            outcome = self._engine(session).settle(DrawRequest(DRAW_DATE, "02:00 PM"))
            self.assertEqual(outcome.status, DrawStatus.GENERATED)
            self.assertTrue(self.lock.is_locked(key))
            session.rollback()
        self.assertFalse(self.lock.is_locked(key))
        self.assertEqual(self._count_results(), 0)

    def test_timeout_writes_nothing(self):
        self._seed(50, [("shop", "30-11:1", "360")])
        ticks = itertools.chain([0.0], itertools.repeat(100.0))
        with self.assertRaises(DrawTimeoutError):
            self._settle(clock=lambda: next(ticks))
        self.assertEqual(self._count_results(), 0)
        self.assertFalse(self.lock.is_locked(DrawLock.key_for(DRAW_DATE, "02:00 PM")))


class TestDrawRequest(unittest.TestCase):
    def test_parse_normalizes_input(self):
        request = DrawRequest.parse("2:00 pm", "2025-01-10", "5")
        self.assertEqual(request, DrawRequest(DRAW_DATE, "02:00 PM", 5))
        self.assertEqual(DrawRequest.parse("14:00", DRAW_DATE).draw_slot, "02:00 PM")

    def test_parse_rejects_missing_or_invalid_values(self):
        cases = [
            (None, "2025-01-10", None),
            ("2:00 PM", None, None),
            ("2:00 PM", " ", None),
            ("2:00 PM", "10/01/2025", None),
            ("later", "2025-01-10", None),
            ("2:00 PM", "2025-01-10", "agent"),
        ]
        for draw_time, draw_date, seller in cases:
            with self.subTest(draw_time=draw_time, draw_date=draw_date, seller=seller):
                with self.assertRaises(InvalidDrawRequestError):
                    DrawRequest.parse(draw_time, draw_date, seller)

    def test_parse_rejects_times_that_are_not_draw_slots(self):
        for draw_time in ("2:07 PM", "03:00 AM", "08:45 AM", "12:00 AM"):
            with self.subTest(draw_time=draw_time):
                with self.assertRaises(InvalidDrawRequestError):
                    DrawRequest.parse(draw_time, "2025-01-10")
        self.assertEqual(DrawRequest.parse("11:45 pm", "2025-01-10").draw_slot, "11:45 PM")
        early = DrawRequest.parse("08:45", "2025-01-10", first_slot="08:00 AM")
        self.assertEqual(early.draw_slot, "08:45 AM")


if __name__ == "__main__":
    unittest.main()
