"""Library API routes - the buyer's purchased tracks"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from trackstore.core.security import require_auth
from trackstore.db.session import get_db
from trackstore.schemas.downloads import LibraryResponse, OwnershipResponse
from trackstore.services.entitlement_service import is_entitled, list_library

router = APIRouter(prefix="/api/library", tags=["library"])


@router.get("", response_model=LibraryResponse)
def get_library(buyer_id: str = Depends(require_auth), db: Session = Depends(get_db)):
    """List the caller's purchased tracks, newest first"""
    return {"purchases": list_library(buyer_id, db)}


@router.get("/{track_id}", response_model=OwnershipResponse)
def get_ownership(track_id: str, buyer_id: str = Depends(require_auth), db: Session = Depends(get_db)):
    """Whether the caller owns a track"""
    return {"track_id": track_id, "owned": is_entitled(buyer_id, track_id, db)}
