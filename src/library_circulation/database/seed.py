"""
Demo data for the library circulation service.

Generates patrons and assets with Faker, then drives some circulation
through the engine itself (loans, returns, holds, a lost copy) so that every
status in the database is backed by matching ledger rows and events.
Seeding is deterministic for a given seed.
"""

import logging
import random
from typing import Any

from faker import Faker

from ..circulation.engine import CirculationEngine
from ..models.asset import AssetCreate, AssetType
from ..models.patron import PatronContact
from ..notifications.gateway import NullNotificationGateway
from .asset_registry import AssetRegistry
from .patron_directory import DatabasePatronDirectory
from .session import DatabaseManager

logger = logging.getLogger(__name__)

BRANCHES = ["Central", "Riverside", "Hillcrest", "Old Town"]

FIRST_CARD_ID = 1001


def generate_isbn13(rng: random.Random) -> str:
    """Generate a valid ISBN-13 number."""
    digits = "978" + "".join(str(rng.randint(0, 9)) for _ in range(9))
    total = sum(int(digit) * (3 if i % 2 else 1) for i, digit in enumerate(digits))
    check_digit = (10 - (total % 10)) % 10
    return f"{digits}{check_digit}"


def generate_patrons(fake: Faker, count: int) -> list[PatronContact]:
    """Library cards numbered from FIRST_CARD_ID, each with a unique email."""
    return [
        PatronContact(
            library_card_id=FIRST_CARD_ID + i,
            first_name=fake.first_name(),
            last_name=fake.last_name(),
            email=fake.unique.email(),
        )
        for i in range(count)
    ]


def generate_assets(fake: Faker, rng: random.Random, count: int) -> list[AssetCreate]:
    """Roughly four books for every video."""
    assets = []
    for _ in range(count):
        if rng.random() < 0.8:
            assets.append(
                AssetCreate(
                    asset_type=AssetType.BOOK,
                    title=fake.catch_phrase(),
                    author_or_director=fake.name(),
                    year=rng.randint(1900, 2024),
                    cost=round(rng.uniform(8, 60), 2),
                    image_url=f"https://covers.example.org/{fake.uuid4()}.jpg",
                    number_of_copies=rng.randint(1, 3),
                    isbn=generate_isbn13(rng),
                    home_branch=rng.choice(BRANCHES),
                )
            )
        else:
            assets.append(
                AssetCreate(
                    asset_type=AssetType.VIDEO,
                    title=fake.bs().title(),
                    author_or_director=fake.name(),
                    year=rng.randint(1950, 2024),
                    cost=round(rng.uniform(10, 40), 2),
                    number_of_copies=1,
                    home_branch=rng.choice(BRANCHES),
                )
            )
    return assets


def seed_database(
    db_manager: DatabaseManager,
    num_patrons: int = 20,
    num_assets: int = 40,
    seed: int = 42,
) -> dict[str, Any]:
    """
    Load demo patrons, assets and circulation history.

    Args:
        db_manager: Database to seed; its schema must already exist
        num_patrons: Number of library cards to register
        num_assets: Number of assets to register
        seed: Random seed for Faker and circulation choices

    Returns:
        Counts of what was created
    """
    fake = Faker()
    fake.seed_instance(seed)
    rng = random.Random(seed)

    directory = DatabasePatronDirectory(db_manager)
    patrons = [directory.register(contact) for contact in generate_patrons(fake, num_patrons)]
    logger.info("Registered %d patrons", len(patrons))

    with db_manager.session_scope() as session:
        registry = AssetRegistry(session)
        asset_ids = [registry.add(data).id for data in generate_assets(fake, rng, num_assets)]
    logger.info("Registered %d assets", len(asset_ids))

    engine = CirculationEngine(db_manager, directory, NullNotificationGateway())
    cards = [p.library_card_id for p in patrons]
    summary = {"patrons": len(patrons), "assets": len(asset_ids), "returned": 0}

    if not cards:
        summary.update(checked_out=0, holds=0, lost=0)
        return summary

    # Some past loans that came back
    for asset_id in rng.sample(asset_ids, k=len(asset_ids) // 3):
        engine.check_out(asset_id, rng.choice(cards))
        engine.check_in(asset_id)
        summary["returned"] += 1

    # Current loans, some with people waiting
    on_loan = rng.sample(asset_ids, k=len(asset_ids) // 4)
    holds = 0
    for asset_id in on_loan:
        borrower, *waiting = rng.sample(cards, k=min(len(cards), 3))
        engine.check_out(asset_id, borrower)
        for card in waiting[: rng.randint(0, len(waiting))]:
            engine.place_hold(asset_id, card)
            holds += 1
    summary["checked_out"] = len(on_loan)
    summary["holds"] = holds

    # One copy went missing while on loan
    lost = 0
    if on_loan:
        engine.mark_lost(on_loan[0])
        lost = 1
    summary["lost"] = lost
    summary["checked_out"] -= lost

    logger.info("Seeded circulation: %s", summary)
    return summary
