"""Listing search, detail and lifecycle routes."""

import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from tradeintel.config import Settings, get_settings
from tradeintel.dependencies import get_current_user_id, get_db
from tradeintel.models.listing import IntentType, ListingStatus
from tradeintel.schemas.listing import ListingPage, ListingResponse, ListingStats
from tradeintel.services.crosspost_service import CrossPostService
from tradeintel.services.listing_service import MAX_PAGE_SIZE, ListingService
from tradeintel.services.lookup_cache import get_lookup_caches

router = APIRouter(prefix="/listings", tags=["listings"])


@router.get("", response_model=ListingPage)
async def search_listings(
    q: str | None = Query(None, max_length=200),
    intent: IntentType | None = None,
    listing_status: ListingStatus | None = Query(ListingStatus.ACTIVE, alias="status"),
    price_min: Decimal | None = Query(None, ge=0),
    price_max: Decimal | None = Query(None, ge=0),
    limit: int = Query(20, ge=1, le=MAX_PAGE_SIZE),
    offset: int = Query(0, ge=0),
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Search listings by keyword, intent, status and price range."""
    listings, total = await ListingService().search(
        db,
        query=q,
        intent=intent,
        status=listing_status,
        price_min=price_min,
        price_max=price_max,
        limit=limit,
        offset=offset,
    )
    lookups = await get_lookup_caches(settings).get_lookups(db)
    counts = await CrossPostService().batch_counts(db, listings)
    return ListingPage(
        items=[ListingResponse.from_listing(item, lookups, counts.get(item.id, 0)) for item in listings],
        total=total,
        limit=limit,
        offset=offset,
    )


@router.get("/stats", response_model=ListingStats)
async def listing_stats(
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    return ListingStats(**await ListingService().stats(db))


@router.get("/{listing_id}", response_model=ListingResponse)
async def get_listing(
    listing_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    listing = await ListingService().get(db, listing_id)
    lookups = await get_lookup_caches(settings).get_lookups(db)
    count = await CrossPostService().count_cross_posts(db, listing)
    return ListingResponse.from_listing(listing, lookups, count)


@router.get("/{listing_id}/cross-posts", response_model=list[ListingResponse])
async def get_cross_posts(
    listing_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    """Other postings of the same item in different groups."""
    listing = await ListingService().get(db, listing_id)
    lookups = await get_lookup_caches(settings).get_lookups(db)
    cross_posts = await CrossPostService().find_cross_posts(db, listing)
    return [ListingResponse.from_listing(item, lookups) for item in cross_posts]


@router.delete("/{listing_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_listing(
    listing_id: uuid.UUID,
    user_id: uuid.UUID = Depends(get_current_user_id),
    db: AsyncSession = Depends(get_db),
):
    await ListingService().soft_delete(db, listing_id, user_id)
