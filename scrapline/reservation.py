import logging
from typing import Any, Mapping, Optional

from scrapline.exceptions import ConflictError
from scrapline.lifecycle import LifecycleEngine, Transition
from scrapline.models import Listing, ListingStatus
from scrapline.repository import ListingRepository

logger = logging.getLogger(__name__)


class ReservationCoordinator:
    """Reads a listing, runs the lifecycle engine on it and writes the result back.

    Writes are conditional on the status and version that were read, so a
    transition computed from a stale snapshot is rejected with ConflictError
    instead of overwriting someone else's change. Nothing is retried here.
    """

    def __init__(self, repository: ListingRepository, engine: LifecycleEngine | None = None):
        self.repository = repository
        self.engine = engine or LifecycleEngine()

    def create(self, seller: Optional[str], fields: Mapping[str, Any]) -> Listing:
        listing = self.repository.create(self.engine.create(seller, fields))
        logger.info(f"Listing {listing.listing_id} created by seller {seller}")
        return listing

    def update(self, listing_id: str, actor: Optional[str], fields: Mapping[str, Any]) -> Listing:
        listing = self.repository.get(listing_id)
        return self._commit(self.engine.update(listing, actor, fields), actor)

    def attempt_claim(self, listing_id: str, collector: Optional[str], pickup_time) -> Listing:
        listing = self.repository.get(listing_id)
        if listing.status == ListingStatus.RESERVED and collector not in (None, listing.seller_id):
            logger.warning(f"Listing {listing_id} already reserved; claim by {collector} lost")
            raise ConflictError(f"Listing {listing_id} has already been claimed by another collector")
        return self._commit(self.engine.claim(listing, collector, pickup_time), collector)

    def dispute(self, listing_id: str, actor: Optional[str]) -> Listing:
        listing = self.repository.get(listing_id)
        transition = self.engine.dispute(listing, actor)
        # Disputes are unthrottled; the log line is the only trail.
        logger.info(
            f"Seller {actor} disputed pickup of listing {listing_id} "
            f"by collector {listing.collector_id}"
        )
        return self._commit(transition, actor)

    def finalize(
        self, listing_id: str, actor: Optional[str], unit_price, actual_weight
    ) -> Listing:
        listing = self.repository.get(listing_id)
        return self._commit(
            self.engine.finalize(listing, actor, unit_price, actual_weight), actor
        )

    def withdraw(self, listing_id: str, actor: Optional[str]) -> None:
        listing = self.repository.get(listing_id)
        self._commit(self.engine.withdraw(listing, actor), actor)

    def _commit(self, transition: Transition, actor: Optional[str]) -> Listing | None:
        try:
            if transition.removes:
                self.repository.delete(
                    transition.listing_id,
                    transition.expected_status,
                    transition.expected_version,
                )
                logger.info(f"Listing {transition.listing_id} withdrawn by {actor}")
                return None

            listing = self.repository.conditional_update(
                transition.listing_id,
                transition.expected_status,
                transition.expected_version,
                transition.changes,
            )
        except ConflictError:
            logger.warning(
                f"Lost race on {transition.action.value} of listing "
                f"{transition.listing_id} by {actor}"
            )
            raise

        logger.info(
            f"Listing {listing.listing_id} {transition.action.value} by {actor}: "
            f"{transition.expected_status.value} -> {listing.status.value}"
        )
        return listing
