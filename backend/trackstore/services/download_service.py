"""Signed download issuance for entitled buyers"""
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import PurePosixPath
from typing import Optional
from urllib.parse import unquote, urlparse
from sqlalchemy.orm import Session

from trackstore.core.config import settings
from trackstore.core.exceptions import AudioNotAvailable, NotEntitled, StorageUnavailable
from trackstore.core.logging import security_logger
from trackstore.core.metrics import download_urls_counter
from trackstore.models.track import Track
from trackstore.services.catalog_service import find_track
from trackstore.services.entitlement_service import find_entitlement
from trackstore.services.storage.r2_service import R2Service, get_r2_service

logger = logging.getLogger(__name__)

DEFAULT_AUDIO_EXTENSION = "mp3"


@dataclass
class DownloadGrant:
    download_url: str
    filename: str
    object_key: str
    expires_in: int
    expires_at: datetime


def resolve_object_key(reference: str, bucket: str) -> str:
    """Turn a track's audio reference into an object key.

    Older catalog rows store a full storage URL such as
    https://host/storage/v1/object/public/music/dir/file.mp3; the key is the
    URL-decoded path after "/<bucket>/".
    """
    reference = reference.strip()
    if "://" not in reference:
        return reference.lstrip("/")

    path = urlparse(reference).path
    marker = f"/{bucket}/"
    if marker in path:
        path = path.split(marker, 1)[1]
    return unquote(path).lstrip("/")


def build_download_filename(track: Track, object_key: str) -> str:
    """'{artist} - {title}.{ext}', ext taken from the object key"""
    extension = PurePosixPath(object_key).suffix.lstrip(".").lower() or DEFAULT_AUDIO_EXTENSION
    name = f"{track.artist} - {track.title}"
    for separator in ("/", "\\"):
        name = name.replace(separator, "-")
    return f"{name.strip()}.{extension}"


def issue_download(buyer_id: str, track_id: str, db: Session, storage: Optional[R2Service] = None) -> DownloadGrant:
    """Issue a short-lived download link for a track the buyer owns.

    Raises:
        NotEntitled: No paid purchase for (buyer, track); raised before the
            catalog is consulted so it reads the same for unknown tracks
        AudioNotAvailable: Entitled, but the track has no audio object
        StorageUnavailable: Object storage failed; retryable
    """
    if find_entitlement(buyer_id, track_id, db) is None:
        download_urls_counter.labels(status="not_entitled").inc()
        security_logger.warning(f"Download denied - buyer: {buyer_id}, track: {track_id}")
        raise NotEntitled()

    track = find_track(track_id, db)
    if track is None or not track.audio_object_key:
        download_urls_counter.labels(status="audio_not_available").inc()
        logger.error(f"Buyer {buyer_id} owns track {track_id} but it has no audio object")
        raise AudioNotAvailable()

    object_key = resolve_object_key(track.audio_object_key, settings.R2_BUCKET_NAME)
    filename = build_download_filename(track, object_key)
    expires_in = settings.DOWNLOAD_URL_EXPIRY

    try:
        if storage is None:
            storage = get_r2_service()
        url = storage.generate_download_url(object_key, expires_in=expires_in, filename=filename)
    except ValueError as e:
        download_urls_counter.labels(status="storage_unavailable").inc()
        logger.error(f"Object storage not usable for track {track_id}: {e}")
        raise StorageUnavailable()
    except StorageUnavailable:
        download_urls_counter.labels(status="storage_unavailable").inc()
        raise

    download_urls_counter.labels(status="issued").inc()
    logger.info(f"Issued download URL for track {track_id} to buyer {buyer_id} (expires in {expires_in}s)")
    return DownloadGrant(
        download_url=url,
        filename=filename,
        object_key=object_key,
        expires_in=expires_in,
        expires_at=datetime.now(timezone.utc) + timedelta(seconds=expires_in)
    )
