"""Signed download issuer tests"""
import pytest
from datetime import datetime, timedelta, timezone
from fastapi import status
from unittest.mock import Mock, patch
from urllib.parse import parse_qs, unquote, urlparse

from trackstore.core.exceptions import AudioNotAvailable, NotEntitled, StorageUnavailable
from trackstore.models.purchase import Purchase
from trackstore.models.track import Track
from trackstore.services.download_service import build_download_filename, issue_download, resolve_object_key
from trackstore.services.storage.r2_service import R2Service


def _pay(db_session, buyer_id="U1", track_id="T001", transaction_id="tx_1", status_value="paid"):
    purchase = Purchase(
        buyer_id=buyer_id, track_id=track_id, provider_transaction_id=transaction_id,
        amount_cents=99, currency="usd", status=status_value
    )
    db_session.add(purchase)
    db_session.commit()
    return purchase


@pytest.mark.critical
class TestAuthorizationGate:
    """No paid purchase, no download - whatever the track's state"""

    def test_never_paid(self, client, test_track, u2_headers):
        """U2 never paid for T001"""
        response = client.get("/api/download", params={"track_id": "T001"}, headers=u2_headers)
        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.json() == {"error": "not_entitled", "detail": "Not entitled"}

    def test_same_answer_for_unknown_track(self, client, u2_headers, test_track):
        unknown = client.get("/api/download", params={"track_id": "T404"}, headers=u2_headers)
        unpaid = client.get("/api/download", params={"track_id": "T001"}, headers=u2_headers)
        assert unknown.status_code == unpaid.status_code == status.HTTP_403_FORBIDDEN
        assert unknown.json() == unpaid.json()

    def test_paid_for_another_track(self, db_session, test_track):
        _pay(db_session, track_id="T999")
        with pytest.raises(NotEntitled):
            issue_download("U1", "T001", db_session, storage=Mock())

    def test_other_buyers_purchase_does_not_count(self, db_session, test_track):
        _pay(db_session, buyer_id="U1")
        storage = Mock()
        with pytest.raises(NotEntitled):
            issue_download("U2", "T001", db_session, storage=storage)
        storage.generate_download_url.assert_not_called()

    def test_non_paid_status_not_entitled(self, db_session, test_track):
        _pay(db_session, status_value="refunded")
        with pytest.raises(NotEntitled):
            issue_download("U1", "T001", db_session, storage=Mock())

    def test_requires_auth(self, client, test_track):
        response = client.get("/api/download", params={"track_id": "T001"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.critical
class TestIssueDownload:
    """Entitled buyers get a short-lived signed URL"""

    def test_entitled_buyer_gets_signed_url(self, client, db_session, test_track, u1_headers):
        _pay(db_session)
        before = datetime.now(timezone.utc)
        response = client.get("/api/download", params={"track_id": "T001"}, headers=u1_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["filename"] == "The Testers - Night Drive.mp3"
        assert 0 < data["expires_in"] <= 3600

        expires_at = datetime.fromisoformat(data["expires_at"].replace("Z", "+00:00"))
        assert expires_at <= before + timedelta(hours=1, seconds=5)

        url = urlparse(data["download_url"])
        query = parse_qs(url.query)
        assert url.path.endswith("tracks/T001/night-drive.mp3")
        assert query["X-Amz-Expires"] == [str(data["expires_in"])]
        assert "attachment" in unquote(query["response-content-disposition"][0])

    def test_track_without_audio(self, db_session, test_track):
        test_track.audio_object_key = None
        db_session.commit()
        _pay(db_session)
        with pytest.raises(AudioNotAvailable):
            issue_download("U1", "T001", db_session, storage=Mock())

    def test_entitled_but_track_removed(self, db_session):
        _pay(db_session, track_id="T404")
        with pytest.raises(AudioNotAvailable):
            issue_download("U1", "T404", db_session, storage=Mock())

    def test_storage_failure_is_503_not_403(self, client, db_session, test_track, u1_headers):
        _pay(db_session)
        storage = Mock()
        storage.generate_download_url.side_effect = StorageUnavailable()
        with patch("trackstore.services.download_service.get_r2_service", return_value=storage):
            response = client.get("/api/download", params={"track_id": "T001"}, headers=u1_headers)
        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE
        assert response.json()["error"] == "storage_unavailable"

    def test_storage_not_configured_is_503(self, db_session, test_track):
        _pay(db_session)
        with patch("trackstore.services.download_service.get_r2_service", side_effect=ValueError("R2 configuration is missing")):
            with pytest.raises(StorageUnavailable):
                issue_download("U1", "T001", db_session)

    def test_storage_receives_key_ttl_and_filename(self, db_session, test_track):
        _pay(db_session)
        storage = Mock()
        storage.generate_download_url.return_value = "https://signed.example.com/x"
        grant = issue_download("U1", "T001", db_session, storage=storage)

        storage.generate_download_url.assert_called_once_with(
            "tracks/T001/night-drive.mp3", expires_in=3600, filename="The Testers - Night Drive.mp3"
        )
        assert grant.download_url == "https://signed.example.com/x"
        assert grant.object_key == "tracks/T001/night-drive.mp3"


@pytest.mark.medium
class TestObjectKeys:
    """Audio references and suggested filenames"""

    def test_plain_key_unchanged(self):
        assert resolve_object_key("tracks/a.mp3", "music") == "tracks/a.mp3"
        assert resolve_object_key("/tracks/a.mp3", "music") == "tracks/a.mp3"

    def test_full_storage_url_reduced_to_key(self):
        url = "https://abc.supabase.co/storage/v1/object/public/music/Artist%20Name/My%20Song.wav"
        assert resolve_object_key(url, "music") == "Artist Name/My Song.wav"

    def test_filename_uses_key_extension(self):
        track = Track(id="T1", title="Song", artist="AC/DC")
        assert build_download_filename(track, "x/y.WAV") == "AC-DC - Song.wav"
        assert build_download_filename(track, "x/noext") == "AC-DC - Song.mp3"


@pytest.mark.medium
class TestR2Service:
    """R2 adapter against a real boto3 client (presigning is local)"""

    def test_presigned_url_has_attachment_disposition(self):
        service = R2Service()
        url = service.generate_download_url("tracks/ä.mp3", expires_in=120, filename="Björk - Jóga.mp3")
        query = parse_qs(urlparse(url).query)
        disposition = query["response-content-disposition"][0]
        assert disposition.startswith("attachment;")
        assert "filename*=UTF-8''Bj%C3%B6rk" in disposition
        assert query["X-Amz-Expires"] == ["120"]

    def test_empty_key_rejected(self):
        with pytest.raises(ValueError):
            R2Service().generate_download_url("")

    def test_missing_credentials(self):
        from trackstore.core.config import settings
        with patch.object(settings, "R2_ACCESS_KEY_ID", ""):
            with pytest.raises(ValueError):
                R2Service()

    def test_public_url(self):
        from trackstore.core.config import settings
        with patch.object(settings, "R2_PUBLIC_DOMAIN", "cdn.example.com"):
            assert R2Service().get_public_url("covers/a b.jpg") == "https://cdn.example.com/covers/a%20b.jpg"
        with patch.object(settings, "R2_PUBLIC_DOMAIN", ""):
            assert R2Service().get_public_url("covers/a.jpg") is None
