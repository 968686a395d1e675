# =============================================================================
# Unit Tests: Downloader
# =============================================================================

from unittest.mock import MagicMock

import pytest
import requests

from koordinates_ogc import KoordinatesSettings
from koordinates_ogc.downloader import (
    create_session,
    download_file,
    ensure_dataset,
    wait_for_file,
)
from koordinates_ogc.exceptions import DatasetDownloadError

from tests.helpers import make_response


ARCHIVE = "https://archive.example.com/linz"


# =============================================================================
# Test: create_session
# =============================================================================

class TestCreateSession:
    """Tests for create_session function."""

    def test_retry_policy_follows_settings(self):
        session = create_session(KoordinatesSettings(retries=5, backoff_factor=1.0))
        retries = session.get_adapter("https://data.linz.govt.nz").max_retries
        assert retries.total == 5
        assert retries.backoff_factor == 1.0
        assert 503 in retries.status_forcelist

    def test_user_agent(self):
        session = create_session(KoordinatesSettings(user_agent="linz-sync/2.0"))
        assert session.headers["User-Agent"] == "linz-sync/2.0"


# =============================================================================
# Test: wait_for_file
# =============================================================================

class TestWaitForFile:
    """Tests for wait_for_file function."""

    def test_existing_file(self, tmp_path):
        path = tmp_path / "ready.csv"
        path.write_text("id\n")
        assert wait_for_file(path, timeout=1.0, poll_interval=0.01) is True

    def test_timeout(self, tmp_path):
        assert wait_for_file(tmp_path / "never.csv", timeout=0.05, poll_interval=0.01) is False


# =============================================================================
# Test: download_file
# =============================================================================

class TestDownloadFile:
    """Tests for download_file function."""

    def test_writes_chunks(self, tmp_path):
        session = MagicMock(spec=requests.Session)
        session.get.return_value = make_response(chunks=[b"id,name\n", b"", b"1,Alice\n"])
        dest = tmp_path / "people.csv"
        assert download_file(f"{ARCHIVE}/people.csv", dest, session=session) == dest
        assert dest.read_bytes() == b"id,name\n1,Alice\n"
        assert not (tmp_path / "people.csv.part").exists()

    def test_rejects_non_http_url(self, tmp_path):
        with pytest.raises(ValueError, match="Unsupported URL scheme"):
            download_file("ftp://example.com/people.csv", tmp_path / "people.csv")

    def test_http_error(self, tmp_path):
        session = MagicMock(spec=requests.Session)
        session.get.return_value = make_response(status_code=404)
        dest = tmp_path / "people.csv"
        with pytest.raises(DatasetDownloadError, match="HTTP 404"):
            download_file(f"{ARCHIVE}/people.csv", dest, session=session)
        assert not dest.exists()

    def test_transport_error(self, tmp_path):
        session = MagicMock(spec=requests.Session)
        session.get.side_effect = requests.Timeout("read timed out")
        with pytest.raises(DatasetDownloadError, match="read timed out"):
            download_file(f"{ARCHIVE}/people.csv", tmp_path / "people.csv", session=session)

    def test_interrupted_stream_removes_partial_file(self, tmp_path):
        def broken_stream(chunk_size):
            yield b"id,name\n"
            raise requests.exceptions.ChunkedEncodingError("connection broken")

        response = make_response()
        response.iter_content.side_effect = broken_stream
        session = MagicMock(spec=requests.Session)
        session.get.return_value = response
        dest = tmp_path / "people.csv"
        with pytest.raises(DatasetDownloadError, match="connection broken"):
            download_file(f"{ARCHIVE}/people.csv", dest, session=session)
        assert not dest.exists()
        assert not (tmp_path / "people.csv.part").exists()
        response.close.assert_called_once()


# =============================================================================
# Test: ensure_dataset
# =============================================================================

class TestEnsureDataset:
    """Tests for ensure_dataset function."""

    def test_skips_download_when_cached(self, tmp_path):
        cache = tmp_path / "datasets"
        cache.mkdir()
        (cache / "people.csv").write_text("id,name\n")
        session = MagicMock(spec=requests.Session)
        assert ensure_dataset("people.csv", ARCHIVE, cache, session=session) == cache / "people.csv"
        session.get.assert_not_called()

    def test_downloads_into_new_cache_dir(self, tmp_path):
        cache = tmp_path / "nested" / "datasets"
        session = MagicMock(spec=requests.Session)
        session.get.return_value = make_response(chunks=[b"id\n1\n"])
        path = ensure_dataset("people.csv", ARCHIVE + "/", cache, session=session, poll_interval=0.01)
        assert path == cache / "people.csv"
        assert path.read_text() == "id\n1\n"
        args, kwargs = session.get.call_args
        assert args[0] == f"{ARCHIVE}/people.csv"

    def test_timeout_waiting_for_file(self, tmp_path, monkeypatch):
        monkeypatch.setattr("koordinates_ogc.downloader.wait_for_file", lambda *args: False)
        session = MagicMock(spec=requests.Session)
        session.get.return_value = make_response(chunks=[b"id\n"])
        with pytest.raises(DatasetDownloadError, match="Timed out"):
            ensure_dataset("people.csv", ARCHIVE, tmp_path, session=session, timeout=0.1)

    def test_requires_name(self, tmp_path):
        with pytest.raises(ValueError, match="file name"):
            ensure_dataset("", ARCHIVE, tmp_path)
