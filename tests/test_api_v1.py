from __future__ import annotations

from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient

from homevault.core.config import get_settings
from homevault.main import create_app
from tests.conftest import build_token, write_jpeg


@pytest.fixture()
def camera_jpeg(tmp_path: Path) -> Path:
    return write_jpeg(tmp_path / "camera.jpg", (1600, 1200))


def _upload(client, headers, path: Path, *, filename: str | None = None, content_type="image/jpeg", data=None):
    with path.open("rb") as handle:
        return client.post(
            "/v1/media/upload",
            files={"file": (filename or path.name, handle, content_type)},
            data=data or {},
            headers=headers,
        )


def test_v1_health_ok(client):
    resp = client.get("/v1/health")
    assert resp.status_code == 200
    body = resp.json()
    assert body["status"] == "ok"
    assert body["media_root_writable"] is True
    assert body["version"] == get_settings().version


def test_health_degraded_when_media_root_unusable(tmp_path: Path, monkeypatch):
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("occupied")
    monkeypatch.setenv("MEDIA_PATH", str(blocker / "media"))
    get_settings.cache_clear()

    with TestClient(create_app()) as degraded_client:
        body = degraded_client.get("/v1/health").json()

    assert body["status"] == "degraded"
    assert body["media_root_writable"] is False


def test_media_requires_token(client):
    assert client.get("/v1/media").status_code == 401


def test_token_without_household_is_forbidden(client):
    token = jwt.encode({"sub": "user-1"}, "test-secret", algorithm="HS256")
    resp = client.get("/v1/media", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 403


def test_admin_env_check_requires_scope(client, household_headers):
    resp = client.get("/v1/admin/env-check", headers=household_headers)
    assert resp.status_code == 403


def test_admin_env_check_reports_tools(client, admin_headers, monkeypatch):
    monkeypatch.setenv("HOMEVAULT_HEIF_CONVERT_BINARY", "definitely-not-installed-heif")
    get_settings.cache_clear()

    resp = client.get("/v1/admin/env-check", headers=admin_headers)

    assert resp.status_code == 200
    payload = resp.json()
    assert set(payload) == {"ffmpeg", "heif_convert"}
    assert payload["heif_convert"] is False


def test_jpeg_upload_flow(client, household_headers, camera_jpeg):
    resp = _upload(client, household_headers, camera_jpeg, filename="IMG_0042.jpg")
    assert resp.status_code == 201, resp.text
    body = resp.json()
    media = body["media"]

    assert body["warnings"] == []
    assert media["type"] == "photo"
    assert media["household_id"] == "household-test"
    assert media["uploader_id"] == "user-1"
    assert media["path"].startswith("photos/") and media["path"].endswith("/IMG_0042.jpg")
    assert media["size_bytes"] == camera_jpeg.stat().st_size
    assert len(media["sha256"]) == 64
    assert media["original_filename"] == "IMG_0042.jpg"
    assert media["thumbnail_path"].startswith(".thumbs/photos/")
    assert media["web_path"].endswith("/IMG_0042.webp")
    assert media["preview_path"] is None
    assert media["camera_make"] == "Canon"
    assert media["exposure_time"] == "1/125"
    assert media["f_number"] == pytest.approx(2.8)
    assert media["latitude"] == pytest.approx(37.7749667, abs=1e-5)
    assert media["taken_at"].startswith("2023-07-14T18:32:05")

    media_root = Path(get_settings().media_path)
    assert (media_root / media["path"]).read_bytes() == camera_jpeg.read_bytes()
    assert (media_root / media["thumbnail_path"]).exists()
    assert (media_root / media["web_path"]).exists()

    fetched = client.get(f"/v1/media/{media['id']}", headers=household_headers)
    assert fetched.status_code == 200
    assert fetched.json()["id"] == media["id"]

    listing = client.get("/v1/media", headers=household_headers).json()
    assert listing["total"] == 1
    assert [entry["id"] for entry in listing["items"]] == [media["id"]]

    download = client.get(f"/v1/media/{media['id']}/download", headers=household_headers)
    assert download.status_code == 200
    assert download.headers["content-type"] == "image/webp"

    original = client.get(f"/v1/media/{media['id']}/original", headers=household_headers)
    assert original.status_code == 200
    assert original.content == camera_jpeg.read_bytes()
    assert "IMG_0042.jpg" in original.headers["content-disposition"]

    thumb = client.get(f"/v1/media/{media['id']}/thumbnail", headers=household_headers)
    assert thumb.status_code == 200
    assert thumb.headers["content-type"] == "image/jpeg"


def test_duplicate_upload_is_conflict(client, household_headers, camera_jpeg):
    first = _upload(client, household_headers, camera_jpeg, filename="dup.jpg")
    assert first.status_code == 201
    media_root = Path(get_settings().media_path)
    before = sorted(p for p in media_root.rglob("*") if p.is_file())

    second = _upload(client, household_headers, camera_jpeg, filename="dup.jpg")

    assert second.status_code == 409
    assert second.json()["detail"]["code"] == "conflict"
    assert sorted(p for p in media_root.rglob("*") if p.is_file()) == before


def test_same_filename_in_other_household_is_conflict_on_disk(client, household_headers, camera_jpeg):
    first = _upload(client, household_headers, camera_jpeg, filename="shared.jpg")
    assert first.status_code == 201

    other = {"Authorization": f"Bearer {build_token('household-other')}"}
    second = _upload(client, other, camera_jpeg, filename="shared.jpg")

    assert second.status_code == 409
    media_root = Path(get_settings().media_path)
    assert (media_root / first.json()["media"]["path"]).read_bytes() == camera_jpeg.read_bytes()
    assert client.get("/v1/media", headers=other).json()["total"] == 0


def test_kind_is_inferred_from_filename_when_mime_is_generic(client, household_headers, tmp_path: Path):
    clip = tmp_path / "clip.mp4"
    clip.write_bytes(b"\x00\x00\x00\x18ftypmp42 not really a video")

    resp = _upload(client, household_headers, clip, content_type="application/octet-stream")

    assert resp.status_code == 201, resp.text
    body = resp.json()
    assert body["media"]["type"] == "video"
    assert body["media"]["mime_type"] == "video/mp4"
    assert body["media"]["path"].startswith("videos/")
    assert body["warnings"] == ["thumbnail_generation_failed"]


def test_invalid_kind_is_rejected(client, household_headers, camera_jpeg):
    resp = _upload(client, household_headers, camera_jpeg, data={"type": "document"})
    assert resp.status_code == 400
    assert resp.json()["detail"]["code"] == "invalid_upload"


def test_unknown_kind_without_hint_is_rejected(client, household_headers, tmp_path: Path):
    notes = tmp_path / "notes.txt"
    notes.write_text("shopping list")
    resp = _upload(client, household_headers, notes, content_type="text/plain")
    assert resp.status_code == 400


def test_oversized_upload_is_rejected(client, household_headers, camera_jpeg, monkeypatch):
    monkeypatch.setenv("HOMEVAULT_MAX_UPLOAD_SIZE_BYTES", "1024")
    get_settings.cache_clear()
    with TestClient(create_app()) as small_client:
        resp = _upload(small_client, household_headers, camera_jpeg)

    assert resp.status_code == 413
    assert resp.json()["detail"]["code"] == "upload_too_large"
    media_root = Path(get_settings().media_path)
    assert not [p for p in media_root.rglob("*") if p.is_file()]


def test_list_pagination_and_filter(client, household_headers, tmp_path: Path):
    for index in range(3):
        image = write_jpeg(tmp_path / f"p{index}.jpg", (64, 48), with_exif=False)
        assert _upload(client, household_headers, image).status_code == 201
    clip = tmp_path / "v.mp4"
    clip.write_bytes(b"not a video")
    assert _upload(client, household_headers, clip, content_type="video/mp4").status_code == 201

    page = client.get("/v1/media", params={"page": 2, "page_size": 3}, headers=household_headers).json()
    assert (page["page"], page["page_size"], page["total"]) == (2, 3, 4)
    assert len(page["items"]) == 1

    clamped = client.get("/v1/media", params={"page": 0, "page_size": 500}, headers=household_headers).json()
    assert (clamped["page"], clamped["page_size"]) == (1, 20)

    videos = client.get("/v1/media", params={"type": "video"}, headers=household_headers).json()
    assert videos["total"] == 1
    assert videos["items"][0]["type"] == "video"


def test_media_is_household_scoped(client, household_headers, camera_jpeg):
    media_id = _upload(client, household_headers, camera_jpeg).json()["media"]["id"]
    other = {"Authorization": f"Bearer {build_token('household-other')}"}

    assert client.get(f"/v1/media/{media_id}", headers=other).status_code == 404
    assert client.delete(f"/v1/media/{media_id}", headers=other).status_code == 404


def test_delete_removes_row_and_files(client, household_headers, camera_jpeg):
    media = _upload(client, household_headers, camera_jpeg).json()["media"]
    media_root = Path(get_settings().media_path)

    resp = client.delete(f"/v1/media/{media['id']}", headers=household_headers)

    assert resp.status_code == 204
    assert client.get(f"/v1/media/{media['id']}", headers=household_headers).status_code == 404
    for key in ("path", "thumbnail_path", "web_path"):
        assert not (media_root / media[key]).exists()


def test_download_falls_back_to_original(client, household_headers, tmp_path: Path):
    clip = tmp_path / "v.mov"
    clip.write_bytes(b"quicktime bytes")
    media = _upload(client, household_headers, clip, content_type="video/quicktime").json()["media"]

    resp = client.get(f"/v1/media/{media['id']}/download", headers=household_headers)

    assert resp.status_code == 200
    assert resp.content == b"quicktime bytes"
    assert resp.headers["content-type"].startswith("video/quicktime")
    assert client.get(f"/v1/media/{media['id']}/thumbnail", headers=household_headers).status_code == 404


def test_openapi_lists_media_routes(client):
    paths = client.get("/openapi.json").json()["paths"]
    assert "/v1/media/upload" in paths
    assert "/v1/media/{media_id}/download" in paths
    assert "/metadata" not in paths
