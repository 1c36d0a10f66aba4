from datetime import datetime, timedelta, timezone
from itertools import count

import pytest
from fastapi.testclient import TestClient
from sqlmodel import create_engine

from scrapline.api.dependencies import get_listing_repository, get_user_repository
from scrapline.database import drop_database, initialize_database
from scrapline.lifecycle import LifecycleEngine
from scrapline.main import app
from scrapline.map_query import MapQueryService
from scrapline.models import User
from scrapline.repository import (
    InMemoryListingRepository,
    InMemoryUserRepository,
    SqlListingRepository,
)
from scrapline.reservation import ReservationCoordinator
from scrapline.visibility import VisibilityPolicy

SELLER = "seller-1"
COLLECTOR_A = "collector-a"
COLLECTOR_B = "collector-b"
COLLECTOR_C = "collector-c"

PICKUP_TIME = datetime(2026, 10, 20, 9, 30, tzinfo=timezone.utc)


def listing_fields(**overrides):
    fields = {
        "title": "Old electronics",
        "description": "Two broken monitors and a keyboard",
        "waste_type": "E_WASTE",
        "estimated_weight": 5,
        "latitude": 6.9271,
        "longitude": 79.8612,
        "address": "12 Galle Road, Colombo",
        "image_url": "https://images.example.com/monitors.jpg",
    }
    fields.update(overrides)
    return fields


@pytest.fixture
def clock():
    """Deterministic clock: each call is one minute after the previous."""
    start = datetime(2026, 10, 19, 8, 0, tzinfo=timezone.utc)
    ticks = count()
    return lambda: start + timedelta(minutes=next(ticks))


@pytest.fixture
def lifecycle(clock):
    return LifecycleEngine(clock=clock)


@pytest.fixture
def listing_repository():
    return InMemoryListingRepository()


@pytest.fixture
def user_repository():
    users = InMemoryUserRepository()
    users.upsert(User(user_id=SELLER, full_name="Nimal Perera", phone="+94 77 111 1111", email="nimal@example.com"))
    users.upsert(User(user_id=COLLECTOR_A, full_name="Asha Silva", phone="+94 77 222 2222", email="asha@example.com"))
    users.upsert(User(user_id=COLLECTOR_B, full_name="Bandu Fernando", phone="+94 77 333 3333", email="bandu@example.com"))
    users.upsert(User(user_id=COLLECTOR_C, full_name="Chamari Dias", phone="+94 77 444 4444", email="chamari@example.com"))
    return users


@pytest.fixture
def coordinator(listing_repository, lifecycle):
    return ReservationCoordinator(listing_repository, lifecycle)


@pytest.fixture
def visibility(user_repository):
    return VisibilityPolicy(user_repository)


@pytest.fixture
def queries(listing_repository, visibility):
    return MapQueryService(listing_repository, visibility)


@pytest.fixture
def active_listing(coordinator):
    return coordinator.create(SELLER, listing_fields())


@pytest.fixture
def reserved_listing(coordinator, active_listing):
    return coordinator.attempt_claim(active_listing.listing_id, COLLECTOR_A, PICKUP_TIME)


@pytest.fixture
def client(listing_repository, user_repository):
    """HTTP client wired to the in-memory stores.

    Used without a context manager so the startup hook does not try to reach
    a real database.
    """
    app.dependency_overrides[get_listing_repository] = lambda: listing_repository
    app.dependency_overrides[get_user_repository] = lambda: user_repository
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def sql_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'scrapline.db'}",
        connect_args={"check_same_thread": False},
    )
    initialize_database(engine)
    yield engine
    drop_database(engine)
    engine.dispose()


@pytest.fixture
def sql_repository(sql_engine):
    return SqlListingRepository(sql_engine)
