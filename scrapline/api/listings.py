import logging
from typing import Optional

from fastapi import APIRouter, Depends, Response, status

from scrapline.api.dependencies import get_coordinator, get_queries, get_visibility
from scrapline.identity import current_user
from scrapline.map_query import MapQueryService
from scrapline.models import WASTE_TYPE_LABELS
from scrapline.reservation import ReservationCoordinator
from scrapline.schemas.request import (
    ClaimRequest,
    FinalizeRequest,
    ListingCreate,
    ListingUpdate,
)
from scrapline.schemas.response import (
    ListingsResponse,
    ListingsSummary,
    ListingView,
    WasteTypeOption,
)
from scrapline.visibility import VisibilityPolicy

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/listings", tags=["listings"])


@router.get("/map", response_model=ListingsResponse)
def get_map_listings(
    user: Optional[str] = Depends(current_user),
    queries: MapQueryService = Depends(get_queries),
):
    """All active listings for the shared map, newest first."""
    logger.info(f"GET /listings/map - Viewer: {user}")
    listings = queries.list_active(user)
    return ListingsResponse(listings=listings, total=len(listings))


@router.get("/mine", response_model=ListingsResponse)
def get_my_listings(
    user: Optional[str] = Depends(current_user),
    queries: MapQueryService = Depends(get_queries),
):
    logger.info(f"GET /listings/mine - Seller: {user}")
    listings = queries.my_listings(user)
    return ListingsResponse(listings=listings, total=len(listings))


@router.get("/mine/summary", response_model=ListingsSummary)
def get_my_summary(
    user: Optional[str] = Depends(current_user),
    queries: MapQueryService = Depends(get_queries),
):
    logger.info(f"GET /listings/mine/summary - Seller: {user}")
    return queries.summary(user)


@router.get("/jobs", response_model=ListingsResponse)
def get_my_jobs(
    user: Optional[str] = Depends(current_user),
    queries: MapQueryService = Depends(get_queries),
):
    logger.info(f"GET /listings/jobs - Collector: {user}")
    listings = queries.my_jobs(user)
    return ListingsResponse(listings=listings, total=len(listings))


@router.get("/waste-types", response_model=list[WasteTypeOption])
def get_waste_types():
    return [
        WasteTypeOption(value=waste_type, label=label)
        for waste_type, label in WASTE_TYPE_LABELS.items()
    ]


@router.get("/{listing_id}", response_model=ListingView)
def get_listing(
    listing_id: str,
    user: Optional[str] = Depends(current_user),
    queries: MapQueryService = Depends(get_queries),
):
    logger.info(f"GET /listings/{listing_id} - Viewer: {user}")
    return queries.get(listing_id, user)


@router.post("/", response_model=ListingView, status_code=status.HTTP_201_CREATED)
def create_listing(
    listing_data: ListingCreate,
    user: Optional[str] = Depends(current_user),
    coordinator: ReservationCoordinator = Depends(get_coordinator),
    visibility: VisibilityPolicy = Depends(get_visibility),
):
    logger.info(f"POST /listings/ - Seller: {user}, title: {listing_data.title!r}")
    listing = coordinator.create(user, listing_data.model_dump())
    return visibility.project(listing, user)


@router.patch("/{listing_id}", response_model=ListingView)
def update_listing(
    listing_id: str,
    listing_data: ListingUpdate,
    user: Optional[str] = Depends(current_user),
    coordinator: ReservationCoordinator = Depends(get_coordinator),
    visibility: VisibilityPolicy = Depends(get_visibility),
):
    logger.info(f"PATCH /listings/{listing_id} - Seller: {user}")
    listing = coordinator.update(listing_id, user, listing_data.model_dump(exclude_unset=True))
    return visibility.project(listing, user)


@router.post("/{listing_id}/claim", response_model=ListingView)
def claim_listing(
    listing_id: str,
    claim: ClaimRequest,
    user: Optional[str] = Depends(current_user),
    coordinator: ReservationCoordinator = Depends(get_coordinator),
    visibility: VisibilityPolicy = Depends(get_visibility),
):
    logger.info(f"POST /listings/{listing_id}/claim - Collector: {user}, pickup: {claim.pickup_time}")
    listing = coordinator.attempt_claim(listing_id, user, claim.pickup_time)
    return visibility.project(listing, user)


@router.post("/{listing_id}/dispute", response_model=ListingView)
def dispute_listing(
    listing_id: str,
    user: Optional[str] = Depends(current_user),
    coordinator: ReservationCoordinator = Depends(get_coordinator),
    visibility: VisibilityPolicy = Depends(get_visibility),
):
    logger.info(f"POST /listings/{listing_id}/dispute - Seller: {user}")
    listing = coordinator.dispute(listing_id, user)
    return visibility.project(listing, user)


@router.post("/{listing_id}/finalize", response_model=ListingView)
def finalize_listing(
    listing_id: str,
    settlement: FinalizeRequest,
    user: Optional[str] = Depends(current_user),
    coordinator: ReservationCoordinator = Depends(get_coordinator),
    visibility: VisibilityPolicy = Depends(get_visibility),
):
    logger.info(
        f"POST /listings/{listing_id}/finalize - Collector: {user}, "
        f"unit_price: {settlement.unit_price}, actual_weight: {settlement.actual_weight}"
    )
    listing = coordinator.finalize(
        listing_id, user, settlement.unit_price, settlement.actual_weight
    )
    return visibility.project(listing, user)


@router.delete("/{listing_id}", status_code=status.HTTP_204_NO_CONTENT)
def withdraw_listing(
    listing_id: str,
    user: Optional[str] = Depends(current_user),
    coordinator: ReservationCoordinator = Depends(get_coordinator),
):
    logger.info(f"DELETE /listings/{listing_id} - Seller: {user}")
    coordinator.withdraw(listing_id, user)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
