"""
Engagement Event Endpoints

Explicit view and contact-save tracking calls from the card front-end.
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from cardlink.database.connection import get_db_dependency
from cardlink.engagement import EngagementTracker, RequestMeta
from cardlink.serving.api.dependencies import get_request_meta
from cardlink.serving.api.schemas import ContactSaveRequest, TrackResponse, ViewEventRequest

router = APIRouter()


@router.post("/view", response_model=TrackResponse)
async def track_view(
    body: ViewEventRequest,
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_dependency),
) -> TrackResponse:
    timestamp = await EngagementTracker(db).record_view(
        body.account_id,
        slug=body.slug,
        request_meta=meta,
        metadata=body.metadata,
    )
    return TrackResponse(tracked=True, timestamp=timestamp)


@router.post("/contact-save", response_model=TrackResponse)
async def track_contact_save(
    body: ContactSaveRequest,
    meta: RequestMeta = Depends(get_request_meta),
    db: AsyncSession = Depends(get_db_dependency),
) -> TrackResponse:
    timestamp = await EngagementTracker(db).record_contact_save(
        body.account_id,
        metadata=body.metadata,
        request_meta=meta,
    )
    return TrackResponse(tracked=True, timestamp=timestamp)
