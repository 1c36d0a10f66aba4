"""Role-scoped projection of listings.

Contact details are exchanged only between the two parties of a committed
pickup: the seller sees the collector once a listing is reserved or collected,
and the assigned collector sees the seller. Everyone else gets listing fields
only. The map is the one exception and asks for the seller contact
explicitly.
"""

from typing import Dict, Iterable, List, Optional

from scrapline.lifecycle import Party, relationship
from scrapline.models import Listing, ListingStatus, User
from scrapline.repository import UserRepository
from scrapline.schemas.response import Contact, ListingView

LISTING_FIELDS = (
    "listing_id",
    "title",
    "description",
    "waste_type",
    "estimated_weight",
    "latitude",
    "longitude",
    "address",
    "image_url",
    "status",
    "created_at",
    "pickup_time",
    "completed_at",
    "actual_weight",
    "unit_price",
    "total_amount",
)


def disclosed_parties(listing: Listing, viewer: Optional[str]) -> set[str]:
    """Which contact blocks ("seller", "collector") the viewer may see."""
    if viewer is None:
        return set()

    party = relationship(listing, viewer)
    if party == Party.SELLER and listing.status in (
        ListingStatus.RESERVED,
        ListingStatus.COLLECTED,
    ):
        return {"collector"}
    if party == Party.COLLECTOR:
        return {"seller"}
    return set()


def _contact(user_id: Optional[str], users: Dict[str, User]) -> Optional[Contact]:
    if user_id is None:
        return None
    user = users.get(user_id)
    if user is None:
        return Contact(user_id=user_id)
    return Contact(user_id=user_id, name=user.full_name, phone=user.phone, email=user.email)


class VisibilityPolicy:
    def __init__(self, users: UserRepository):
        self.users = users

    def project(self, listing: Listing, viewer: Optional[str]) -> ListingView:
        return self.project_many([listing], viewer)[0]

    def project_many(
        self,
        listings: Iterable[Listing],
        viewer: Optional[str],
        include_seller: bool = False,
    ) -> List[ListingView]:
        """Project listings for one viewer.

        ``include_seller`` forces the seller contact onto every row; only the
        map query uses it.
        """
        plans = []
        for listing in listings:
            parties = disclosed_parties(listing, viewer)
            if include_seller:
                parties.add("seller")
            plans.append((listing, parties))

        wanted = set()
        for listing, parties in plans:
            if "seller" in parties:
                wanted.add(listing.seller_id)
            if "collector" in parties and listing.collector_id:
                wanted.add(listing.collector_id)
        users = self.users.get_many(wanted)

        views = []
        for listing, parties in plans:
            view = ListingView(**{name: getattr(listing, name) for name in LISTING_FIELDS})
            if "seller" in parties:
                view.seller = _contact(listing.seller_id, users)
            if "collector" in parties:
                view.collector = _contact(listing.collector_id, users)
            views.append(view)
        return views
