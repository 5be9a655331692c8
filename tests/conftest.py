import asyncio
import shutil
import subprocess
from pathlib import Path

import jwt
import pytest
from fastapi.testclient import TestClient
from PIL import ExifTags, Image
from PIL.TiffImagePlugin import IFDRational

from homevault.core.config import get_settings
from homevault.core.db import Base, create_all, create_engine
from homevault.core.logging import configure_logging
from homevault.main import create_app


def pytest_configure(config):
    configure_logging(level="debug")
    config.addinivalue_line(
        "markers",
        "no_default_env: disable the default Homevault environment bootstrap fixture for tests that manage their own .env",
    )


@pytest.fixture()
def media_root(tmp_path) -> Path:
    root = tmp_path / "media"
    root.mkdir()
    return root


@pytest.fixture(autouse=True)
def configure_environment(request, monkeypatch, tmp_path):
    if request.node.get_closest_marker("no_default_env"):
        get_settings.cache_clear()
        yield
        get_settings.cache_clear()
        return
    db_path = tmp_path / "homevault_test.db"
    media_path = tmp_path / "media"

    monkeypatch.setenv("HOMEVAULT_ENV", "test")
    monkeypatch.setenv("HOMEVAULT_LOG_LEVEL", "debug")
    monkeypatch.setenv("HOMEVAULT_DB_URL", f"sqlite+aiosqlite:///{db_path}")
    monkeypatch.setenv("MEDIA_PATH", str(media_path))
    monkeypatch.setenv("HOMEVAULT_JWT_SECRET", "test-secret")
    monkeypatch.setenv("HOMEVAULT_SUBPROCESS_TIMEOUT_S", "30")

    get_settings.cache_clear()
    settings = get_settings()
    engine = create_engine(settings)

    asyncio.run(create_all(engine))

    yield

    async def _teardown() -> None:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
        await engine.dispose()

    asyncio.run(_teardown())
    get_settings.cache_clear()


@pytest.fixture()
def client(configure_environment):
    app = create_app()
    with TestClient(app) as client:
        yield client


def build_token(household_id: str, *, scopes: list[str] | None = None, user_id: str | None = None) -> str:
    payload = {"household_id": household_id}
    if scopes:
        payload["scopes"] = scopes
    if user_id:
        payload["sub"] = user_id
    return jwt.encode(payload, "test-secret", algorithm="HS256")


@pytest.fixture()
def household_headers() -> dict[str, str]:
    token = build_token("household-test", user_id="user-1")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def admin_headers() -> dict[str, str]:
    token = build_token("household-test", scopes=["admin"])
    return {"Authorization": f"Bearer {token}"}


def write_jpeg(path: Path, size: tuple[int, int] = (1600, 1200), *, with_exif: bool = True, color: str = "teal") -> Path:
    """Write a JPEG carrying a realistic camera EXIF block (Canon, GPS in San Francisco)."""
    image = Image.new("RGB", size, color)
    if not with_exif:
        image.save(path, "JPEG")
        return path

    exif = Image.Exif()
    exif[ExifTags.Base.Make] = "Canon"
    exif[ExifTags.Base.Model] = "Canon EOS R5"
    exif[ExifTags.Base.Orientation] = 1
    exif[ExifTags.IFD.Exif] = {
        ExifTags.Base.DateTimeOriginal: "2023:07:14 18:32:05",
        ExifTags.Base.ExposureTime: IFDRational(1, 125),
        ExifTags.Base.FNumber: IFDRational(28, 10),
        ExifTags.Base.ISOSpeedRatings: 400,
        ExifTags.Base.FocalLength: IFDRational(50, 1),
        ExifTags.Base.ExifImageWidth: size[0],
        ExifTags.Base.ExifImageHeight: size[1],
    }
    exif[ExifTags.IFD.GPSInfo] = {
        ExifTags.GPS.GPSLatitudeRef: "N",
        ExifTags.GPS.GPSLatitude: (IFDRational(37, 1), IFDRational(46, 1), IFDRational(2988, 100)),
        ExifTags.GPS.GPSLongitudeRef: "W",
        ExifTags.GPS.GPSLongitude: (IFDRational(122, 1), IFDRational(25, 1), IFDRational(984, 100)),
    }
    image.save(path, "JPEG", exif=exif.tobytes())
    return path


requires_ffmpeg = pytest.mark.skipif(shutil.which("ffmpeg") is None, reason="ffmpeg is not installed")


def _render_video(path: Path, duration_s: float) -> Path:
    command = [
        "ffmpeg",
        "-y",
        "-f", "lavfi",
        "-i", "color=c=navy:s=320x180:r=30",
        "-t", f"{duration_s}",
        "-pix_fmt", "yuv420p",
        str(path),
    ]
    subprocess.run(command, check=True, capture_output=True)
    return path


@pytest.fixture(scope="session")
def generated_video_file(tmp_path_factory) -> Path:
    """A two-second 320x180 MP4, long enough for the one-second seek."""
    if shutil.which("ffmpeg") is None:
        pytest.skip("ffmpeg is not installed")
    return _render_video(tmp_path_factory.mktemp("data") / "clip.mp4", 2.0)


@pytest.fixture(scope="session")
def short_video_file(tmp_path_factory) -> Path:
    """A half-second MP4 that ends before the preferred thumbnail offset."""
    if shutil.which("ffmpeg") is None:
        pytest.skip("ffmpeg is not installed")
    return _render_video(tmp_path_factory.mktemp("data") / "short.mp4", 0.5)
