"""Pydantic schemas for downloads and the buyer's library"""
from datetime import datetime
from pydantic import BaseModel
from typing import List, Optional


class DownloadResponse(BaseModel):
    download_url: str
    filename: str
    expires_in: int  # seconds
    expires_at: datetime


class LibraryItem(BaseModel):
    purchase_id: int
    track_id: str
    title: Optional[str] = None
    artist: Optional[str] = None
    cover_url: Optional[str] = None
    amount_cents: int
    currency: str
    purchased_at: datetime


class LibraryResponse(BaseModel):
    purchases: List[LibraryItem]


class OwnershipResponse(BaseModel):
    track_id: str
    owned: bool
