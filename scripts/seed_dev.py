"""Reset the development database and fill it with one day of sample sales."""

from __future__ import annotations

import random
from datetime import date, datetime, time, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from lottoshop.config import DrawSettings
from lottoshop.db.engine import get_sessionmaker, make_engine
from lottoshop.draw.numbers import PAYOUT_RATE, SERIES_STARTS
from lottoshop.draw.slots import business_slots
from lottoshop.models import Base, Seller, Ticket
from lottoshop.workflows import set_win_percentage

TICKETS_PER_SELLER = 40


def _sample_numbers(rng: random.Random) -> list[dict]:
    entries = []
    for _ in range(rng.randint(1, 6)):
        prefix = rng.choice(SERIES_STARTS) + rng.randrange(10)
        entries.append(
            {"ticketNumber": f"{prefix:02d}-{rng.randrange(100):02d}", "quantity": rng.randint(1, 5)}
        )
    return entries


def main(day: date | None = None, seed: int = 7) -> None:
    """Recreate every table, then add sellers, tickets and a win percentage."""

    settings = DrawSettings.from_env()
    tz = ZoneInfo(settings.timezone)
    day = day or datetime.now(tz).date()
    rng = random.Random(seed)

    engine = make_engine()
    Base.metadata.drop_all(engine)
    Base.metadata.create_all(engine)
    Session = get_sessionmaker(engine)

    slots = business_slots(settings.first_slot, settings.last_slot)
    opening = datetime.combine(day, time(8, 30), tzinfo=tz).astimezone(timezone.utc)

    with Session.begin() as session:
        sellers = [
            Seller(user_name="shop_north"),
            Seller(user_name="shop_south"),
            Seller(user_name="shop_agent", priority=True),
        ]
        session.add_all(sellers)
        session.flush()

        for seller in sellers:
            for _ in range(TICKETS_PER_SELLER):
                numbers = _sample_numbers(rng)
                quantity = sum(entry["quantity"] for entry in numbers)
                session.add(
                    Ticket(
                        seller=seller,
                        draw_times=rng.sample(slots, k=rng.randint(1, 3)),
                        ticket_numbers=numbers,
                        total_quantity=quantity,
                        total_points=Decimal(quantity * PAYOUT_RATE) / 10,
                        created_at=opening,
                    )
                )

        set_win_percentage(session, Decimal("50"))

    print(f"Seeded {len(sellers)} sellers and {len(sellers) * TICKETS_PER_SELLER} tickets for {day}.")


if __name__ == "__main__":
    main()
