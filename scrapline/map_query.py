from typing import List, Optional

from scrapline.exceptions import AuthorizationError
from scrapline.models import ListingStatus
from scrapline.repository import ListingRepository
from scrapline.schemas.response import ListingsSummary, ListingView
from scrapline.visibility import VisibilityPolicy


class MapQueryService:
    """Read side: the shared map plus the seller and collector dashboards."""

    def __init__(self, repository: ListingRepository, visibility: VisibilityPolicy):
        self.repository = repository
        self.visibility = visibility

    def list_active(self, viewer: Optional[str] = None) -> List[ListingView]:
        """Every ACTIVE listing, newest first, with the seller's contact.

        No geographic bounding: clients window and cluster the full set.
        """
        listings = self.repository.find_by_status(ListingStatus.ACTIVE)
        return self.visibility.project_many(listings, viewer, include_seller=True)

    def get(self, listing_id: str, viewer: Optional[str] = None) -> ListingView:
        return self.visibility.project(self.repository.get(listing_id), viewer)

    def my_listings(self, seller: Optional[str]) -> List[ListingView]:
        if seller is None:
            raise AuthorizationError("Sign in to see your listings")
        return self.visibility.project_many(self.repository.find_by_seller(seller), seller)

    def my_jobs(self, collector: Optional[str]) -> List[ListingView]:
        if collector is None:
            raise AuthorizationError("Sign in to see your pickups")
        return self.visibility.project_many(
            self.repository.find_by_collector(collector), collector
        )

    def summary(self, seller: Optional[str]) -> ListingsSummary:
        if seller is None:
            raise AuthorizationError("Sign in to see your listings")
        listings = self.repository.find_by_seller(seller)
        counts = {status: 0 for status in ListingStatus}
        for listing in listings:
            counts[listing.status] += 1
        return ListingsSummary(
            active=counts[ListingStatus.ACTIVE],
            reserved=counts[ListingStatus.RESERVED],
            collected=counts[ListingStatus.COLLECTED],
            total_settled=sum(
                listing.total_amount or 0.0
                for listing in listings
                if listing.status == ListingStatus.COLLECTED
            ),
        )
