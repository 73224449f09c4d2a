"""
Agreement Engine - Downloads Router
Headerless, single-use document links
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import Response

from ..dependencies import get_downloads
from ..exceptions import DownloadExpired, DownloadNotFound
from ..services.rendering import DownloadTokenStore

logger = logging.getLogger(__name__)

router = APIRouter(tags=["downloads"])


@router.get("/download/{token}")
async def download(token: str, downloads: DownloadTokenStore = Depends(get_downloads)):
    try:
        content, entry = downloads.consume(token)
    except DownloadExpired:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail="Link expired")
    except DownloadNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Not found")

    return Response(
        content=content,
        media_type=entry.media_type,
        headers={"Content-Disposition": f'attachment; filename="{entry.filename}"'},
    )
