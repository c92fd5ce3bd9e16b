import uuid as uuid_mod
from typing import Optional
from uuid import UUID

import structlog
from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from fastapi.responses import JSONResponse, Response
from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from core.auth import current_active_user
from core.images import decode_base64_image, resolve_upload
from db.database import get_async_session
from db.image import Image
from db.users import User

router = APIRouter()
logger = structlog.get_logger(__name__)


@router.post("/upload")
async def upload_image(
    file: Optional[UploadFile] = File(None),
    base64_image: Optional[str] = Form(None),
    db: AsyncSession = Depends(get_async_session),
    user: User = Depends(current_active_user),
):
    """
    Store a brand logo, item picture or promoter photo.

    Accepts either a file upload or a base64 (optionally data-URL) string and
    returns the path it is served from (/images/serve/{id}).
    """
    if file:
        data = await file.read()
        filename = file.filename or f"image_{uuid_mod.uuid4().hex[:8]}.jpg"
        content_type = resolve_upload(data, filename, file.content_type)
    elif base64_image:
        data, content_type = decode_base64_image(base64_image)
        filename = f"image_{uuid_mod.uuid4().hex[:8]}.jpg"
    else:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Either 'file' or 'base64_image' must be provided",
        )

    image_id = uuid_mod.uuid4()
    try:
        db.add(Image(id=image_id, data=data, content_type=content_type))
        await db.commit()
    except SQLAlchemyError as e:
        await db.rollback()
        logger.exception("image.upload_failed")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=f"Failed to store image: {e}",
        )

    logger.info("image.uploaded", image_id=str(image_id), bytes=len(data), content_type=content_type)
    return JSONResponse(content={
        "url": f"/images/serve/{image_id}",
        "id": str(image_id),
        "name": filename,
    })


@router.get("/serve/{image_id}", response_class=Response)
async def serve_image(
    image_id: UUID,
    db: AsyncSession = Depends(get_async_session),
):
    """Serve image binary by id. No auth required so img src works."""
    result = await db.execute(select(Image).where(Image.id == image_id))
    row = result.scalar_one_or_none()
    if not row:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Image not found")
    return Response(content=bytes(row.data), media_type=row.content_type)
