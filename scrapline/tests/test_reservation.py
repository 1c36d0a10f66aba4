import threading
from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import (
    COLLECTOR_A,
    COLLECTOR_B,
    COLLECTOR_C,
    PICKUP_TIME,
    SELLER,
    listing_fields,
)
from scrapline.exceptions import (
    AuthorizationError,
    ConflictError,
    InvalidStateError,
    NotFoundError,
)
from scrapline.lifecycle import invariant_violations
from scrapline.models import ListingStatus
from scrapline.reservation import ReservationCoordinator


def test_create_persists_active_listing(coordinator, listing_repository):
    listing = coordinator.create(SELLER, listing_fields())

    stored = listing_repository.get(listing.listing_id)
    assert stored.status == ListingStatus.ACTIVE
    assert stored.title == "Old electronics"
    assert stored.version == 1


def test_attempt_claim_persists_reservation(coordinator, listing_repository, active_listing):
    listing = coordinator.attempt_claim(active_listing.listing_id, COLLECTOR_A, PICKUP_TIME)

    assert listing.status == ListingStatus.RESERVED
    assert listing.collector_id == COLLECTOR_A
    assert listing.pickup_time == PICKUP_TIME
    assert listing.version == 2
    assert listing_repository.get(listing.listing_id).collector_id == COLLECTOR_A


def test_claim_of_reserved_listing_is_a_conflict(coordinator, reserved_listing):
    with pytest.raises(ConflictError):
        coordinator.attempt_claim(reserved_listing.listing_id, COLLECTOR_B, PICKUP_TIME)


def test_claim_of_collected_listing_is_invalid_state(coordinator, reserved_listing):
    coordinator.finalize(reserved_listing.listing_id, COLLECTOR_A, 10, 1)
    with pytest.raises(InvalidStateError) as exc_info:
        coordinator.attempt_claim(reserved_listing.listing_id, COLLECTOR_B, PICKUP_TIME)
    assert not isinstance(exc_info.value, ConflictError)


def test_claim_of_unknown_listing(coordinator):
    with pytest.raises(NotFoundError):
        coordinator.attempt_claim("missing", COLLECTOR_A, PICKUP_TIME)


def test_seller_cannot_claim_own_listing(coordinator, active_listing):
    with pytest.raises(AuthorizationError):
        coordinator.attempt_claim(active_listing.listing_id, SELLER, PICKUP_TIME)


def test_stale_snapshot_loses_the_race(coordinator, listing_repository, lifecycle, active_listing):
    # Both collectors read the listing while it is still ACTIVE.
    snapshot = listing_repository.get(active_listing.listing_id)
    coordinator.attempt_claim(active_listing.listing_id, COLLECTOR_A, PICKUP_TIME)

    late = lifecycle.claim(snapshot, COLLECTOR_B, PICKUP_TIME)
    with pytest.raises(ConflictError):
        coordinator._commit(late, COLLECTOR_B)

    assert listing_repository.get(active_listing.listing_id).collector_id == COLLECTOR_A


def test_concurrent_claims_have_one_winner(listing_repository, lifecycle, active_listing):
    collectors = [f"collector-{n}" for n in range(8)]
    barrier = threading.Barrier(len(collectors))

    def claim(collector):
        coordinator = ReservationCoordinator(listing_repository, lifecycle)
        barrier.wait()
        try:
            coordinator.attempt_claim(active_listing.listing_id, collector, PICKUP_TIME)
            return collector
        except ConflictError:
            return None

    with ThreadPoolExecutor(max_workers=len(collectors)) as pool:
        results = list(pool.map(claim, collectors))

    winners = [collector for collector in results if collector]
    assert len(winners) == 1
    stored = listing_repository.get(active_listing.listing_id)
    assert stored.status == ListingStatus.RESERVED
    assert stored.collector_id == winners[0]
    assert stored.version == 2


def test_withdraw_removes_listing(coordinator, listing_repository, active_listing):
    coordinator.withdraw(active_listing.listing_id, SELLER)

    with pytest.raises(NotFoundError):
        listing_repository.get(active_listing.listing_id)


def test_withdraw_racing_a_claim(coordinator, listing_repository, lifecycle, active_listing):
    snapshot = listing_repository.get(active_listing.listing_id)
    coordinator.attempt_claim(active_listing.listing_id, COLLECTOR_A, PICKUP_TIME)

    with pytest.raises(ConflictError):
        coordinator._commit(lifecycle.withdraw(snapshot, SELLER), SELLER)
    assert listing_repository.get(active_listing.listing_id).status == ListingStatus.RESERVED


def test_claim_after_concurrent_withdraw(coordinator, listing_repository, lifecycle, active_listing):
    snapshot = listing_repository.get(active_listing.listing_id)
    coordinator.withdraw(active_listing.listing_id, SELLER)

    with pytest.raises(ConflictError):
        coordinator._commit(lifecycle.claim(snapshot, COLLECTOR_A, PICKUP_TIME), COLLECTOR_A)


def test_update_bumps_version(coordinator, active_listing):
    listing = coordinator.update(active_listing.listing_id, SELLER, {"title": "Scrap copper"})
    assert listing.title == "Scrap copper"
    assert listing.version == active_listing.version + 1


def test_dispute_then_reclaim_by_another_collector(coordinator, reserved_listing):
    disputed = coordinator.dispute(reserved_listing.listing_id, SELLER)
    assert disputed.status == ListingStatus.ACTIVE
    assert disputed.collector_id is None

    reclaimed = coordinator.attempt_claim(reserved_listing.listing_id, COLLECTOR_B, PICKUP_TIME)
    assert reclaimed.status == ListingStatus.RESERVED
    assert reclaimed.collector_id == COLLECTOR_B


def test_pickup_scenario(coordinator, listing_repository):
    def check(listing):
        assert invariant_violations(listing) == []
        return listing

    listing = check(
        coordinator.create(
            SELLER,
            listing_fields(title="Old electronics", estimated_weight=5, latitude=6.9271, longitude=79.8612),
        )
    )
    assert listing.status == ListingStatus.ACTIVE
    listing_id = listing.listing_id

    listing = check(coordinator.attempt_claim(listing_id, COLLECTOR_A, "2026-10-20T09:30:00+05:30"))
    assert listing.status == ListingStatus.RESERVED
    assert listing.collector_id == COLLECTOR_A

    with pytest.raises(ConflictError):
        coordinator.attempt_claim(listing_id, COLLECTOR_B, "2026-10-20T10:00:00+05:30")

    listing = check(coordinator.dispute(listing_id, SELLER))
    assert listing.status == ListingStatus.ACTIVE
    assert listing.collector_id is None

    listing = check(coordinator.attempt_claim(listing_id, COLLECTOR_C, "2026-10-20T11:00:00+05:30"))
    assert listing.status == ListingStatus.RESERVED
    assert listing.collector_id == COLLECTOR_C

    listing = check(coordinator.finalize(listing_id, COLLECTOR_C, 40, 4.8))
    assert listing.status == ListingStatus.COLLECTED
    assert listing.total_amount == pytest.approx(192)

    stored = check(listing_repository.get(listing_id))
    assert stored.collector_id == COLLECTOR_C
    assert stored.version == 5
