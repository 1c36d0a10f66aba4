from fastapi import Depends

from scrapline.database import get_engine
from scrapline.map_query import MapQueryService
from scrapline.repository import (
    ListingRepository,
    SqlListingRepository,
    SqlUserRepository,
    UserRepository,
)
from scrapline.reservation import ReservationCoordinator
from scrapline.visibility import VisibilityPolicy


def get_listing_repository() -> ListingRepository:
    return SqlListingRepository(get_engine())


def get_user_repository() -> UserRepository:
    return SqlUserRepository(get_engine())


def get_coordinator(
    repository: ListingRepository = Depends(get_listing_repository),
) -> ReservationCoordinator:
    return ReservationCoordinator(repository)


def get_visibility(users: UserRepository = Depends(get_user_repository)) -> VisibilityPolicy:
    return VisibilityPolicy(users)


def get_queries(
    repository: ListingRepository = Depends(get_listing_repository),
    visibility: VisibilityPolicy = Depends(get_visibility),
) -> MapQueryService:
    return MapQueryService(repository, visibility)
