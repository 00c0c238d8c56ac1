"""
Generation Request API Router.

Creation is idempotent per email: the payment webhook and the success
redirect may both call POST /api/request and receive the same id.
"""

import base64
import binascii
import logging
import uuid
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.responses import Response
from sqlalchemy.ext.asyncio import AsyncSession

from app.api.deps import get_admin_user
from app.config import settings
from app.database import get_db
from app.exceptions import GenerationFailure, InputIncomplete, PersistenceFailure
from app.fsm.states import ReadingKind
from app.schemas import (
    CreateRequestBody,
    CreateRequestResponse,
    ReadingResponse,
    RequestStatusResponse,
    VisibilityResponse,
    normalize_owner,
)
from app.services.reading_service import HoroscopeService
from app.services.request_service import RequestService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Requests"])


@router.post("/api/request", response_model=CreateRequestResponse)
async def create_request(
    body: CreateRequestBody,
    db: AsyncSession = Depends(get_db),
):
    """Queue sketch generation for a paid quiz submission."""
    service = RequestService(db)
    try:
        request_id = await service.create_request(
            body.email,
            {"answers": body.answers, "birthDetails": body.birthDetails},
        )
    except InputIncomplete as e:
        raise HTTPException(status_code=400, detail=str(e))
    except PersistenceFailure as e:
        raise HTTPException(status_code=503, detail=str(e))

    return CreateRequestResponse(
        request_id=str(request_id),
        eta_hours=settings.sketch_promised_hours,
    )


@router.get("/api/request/status/{request_id}", response_model=RequestStatusResponse)
async def get_request_status(
    request_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    status = await RequestService(db).get_request_status(request_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Request not found")
    return status


@router.get("/api/sketch", response_model=VisibilityResponse)
async def get_sketch(
    email: str = Query(...),
    db: AsyncSession = Depends(get_db),
):
    """
    Release state of the owner's sketch.

    `content_ref` stays empty until the release time, even when the
    sketch already exists.
    """
    try:
        visibility = await RequestService(db).get_artifact_visibility(email)
    except InputIncomplete as e:
        raise HTTPException(status_code=400, detail=str(e))
    if visibility is None:
        raise HTTPException(status_code=404, detail="No sketch yet")
    return visibility.to_dict()


@router.get("/api/images/{artifact_id}")
async def get_image(
    artifact_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
):
    """Serve an inline-stored sketch once it has been released."""
    artifact = await RequestService(db).get_released_artifact(artifact_id)
    if artifact is None or not artifact.image_data:
        raise HTTPException(status_code=404, detail="Image not found")

    try:
        png = base64.b64decode(artifact.image_data)
    except (binascii.Error, ValueError):
        logger.error(f"Corrupt inline image for artifact {artifact_id}")
        raise HTTPException(status_code=404, detail="Image not found")

    return Response(
        content=png,
        media_type="image/png",
        headers={"Cache-Control": "public, max-age=86400"},
    )


@router.get("/api/horoscope", response_model=ReadingResponse)
async def get_horoscope(
    email: str = Query(...),
    type: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
):
    try:
        owner = normalize_owner(email)
        kind = ReadingKind.from_query(type)
    except (InputIncomplete, ValueError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    service = HoroscopeService(db)
    try:
        reading = await service.get_reading(owner, kind)
    except InputIncomplete as e:
        raise HTTPException(status_code=404, detail=str(e))
    except GenerationFailure as e:
        logger.error(f"Horoscope generation failed for {owner}: {e}")
        raise HTTPException(status_code=503, detail="Reading unavailable, try again later")

    return ReadingResponse(
        kind=reading.kind,
        period_key=reading.period_key,
        guidance=reading.content,
        emotion_score=reading.emotion_score,
        energy_score=reading.energy_score,
    )


@router.get("/admin/requests/failed")
async def list_failed_requests(
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    _: str = Depends(get_admin_user),
):
    """Failed requests for manual inspection. They are never retried automatically."""
    return {"requests": await RequestService(db).list_failed(limit)}
