"""Catalog lookup - read-only access to tracks"""
from typing import Optional
from sqlalchemy.orm import Session

from trackstore.core.exceptions import TrackNotFound
from trackstore.models.track import Track


def find_track(track_id: str, db: Session) -> Optional[Track]:
    """Return the track or None"""
    return db.query(Track).filter(Track.id == track_id).first()


def get_track(track_id: str, db: Session) -> Track:
    """Return the track or raise TrackNotFound"""
    track = find_track(track_id, db)
    if track is None:
        raise TrackNotFound()
    return track
