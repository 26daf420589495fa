"""Download API routes"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from trackstore.core.security import require_auth
from trackstore.db.session import get_db
from trackstore.schemas.downloads import DownloadResponse
from trackstore.services.download_service import issue_download

router = APIRouter(prefix="/api/download", tags=["downloads"])


@router.get("", response_model=DownloadResponse)
def get_download_url(
    track_id: str = Query(..., min_length=1, max_length=64),
    buyer_id: str = Depends(require_auth),
    db: Session = Depends(get_db)
):
    """Get a short-lived signed URL for a purchased track"""
    grant = issue_download(buyer_id, track_id, db)
    return DownloadResponse(
        download_url=grant.download_url,
        filename=grant.filename,
        expires_in=grant.expires_in,
        expires_at=grant.expires_at
    )
