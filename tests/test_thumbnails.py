from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image

from homevault.ingest.converters import ExternalConverter, FfmpegFrameExtractor
from homevault.ingest.errors import ConversionError, ThumbnailError
from homevault.ingest.locator import StorageLocator
from homevault.ingest.models import AssetKind
from homevault.ingest.thumbnails import ThumbnailGenerator
from tests.conftest import write_jpeg


class StillFrame(ExternalConverter):
    def __init__(self, size=(1920, 1080)):
        self.size = size

    def convert(self, source: Path, target: Path) -> Path:
        Image.new("RGB", self.size, "purple").save(target, "JPEG")
        return target


class NoFrame(ExternalConverter):
    def convert(self, source: Path, target: Path) -> Path:
        raise ConversionError("ffmpeg exited with 1, output: moov atom not found")


def _generator(root: Path, extractor: ExternalConverter | None = None) -> ThumbnailGenerator:
    return ThumbnailGenerator(StorageLocator(root), extractor or StillFrame())


@pytest.mark.parametrize(
    "size, expected",
    [
        ((1600, 1200), (300, 225)),
        ((4000, 1000), (300, 75)),
        ((1000, 4000), (75, 300)),
        ((300, 300), (300, 300)),
        ((200, 100), (200, 100)),
    ],
)
def test_image_thumbnail_fits_box_and_keeps_aspect(tmp_path: Path, size, expected):
    source = write_jpeg(tmp_path / "source.jpg", size, with_exif=False)

    asset = _generator(tmp_path / "media").from_image(source, "photos/2024/03/source.jpg")

    assert asset.kind is AssetKind.thumbnail
    assert asset.relative == ".thumbs/photos/2024/03/source.jpg"
    assert (asset.width, asset.height) == expected
    with Image.open(asset.absolute) as thumb:
        assert thumb.format == "JPEG"
        assert thumb.size == expected


def test_thumbnail_applies_exif_orientation(tmp_path: Path):
    source = tmp_path / "rotated.jpg"
    exif = Image.Exif()
    exif[0x0112] = 6  # rotate 90 CW on display
    Image.new("RGB", (800, 400), "orange").save(source, "JPEG", exif=exif.tobytes())

    asset = _generator(tmp_path / "media").from_image(source, "photos/2024/03/rotated.jpg")

    assert (asset.width, asset.height) == (150, 300)


def test_png_with_alpha_becomes_rgb_jpeg(tmp_path: Path):
    source = tmp_path / "logo.png"
    Image.new("RGBA", (640, 480), (255, 0, 0, 128)).save(source, "PNG")

    asset = _generator(tmp_path / "media").from_image(source, "photos/2024/03/logo.png")

    assert asset.relative == ".thumbs/photos/2024/03/logo.jpg"
    with Image.open(asset.absolute) as thumb:
        assert thumb.mode == "RGB"


def test_unreadable_image_is_thumbnail_error(tmp_path: Path):
    source = tmp_path / "junk.jpg"
    source.write_bytes(b"nope")
    root = tmp_path / "media"

    with pytest.raises(ThumbnailError):
        _generator(root).from_image(source, "photos/2024/03/junk.jpg")
    assert not (root / ".thumbs" / "photos" / "2024" / "03" / "junk.jpg").exists()


def test_existing_thumbnail_is_never_overwritten(tmp_path: Path):
    root = tmp_path / "media"
    occupied = root / ".thumbs" / "photos" / "2024" / "03" / "same.jpg"
    occupied.parent.mkdir(parents=True)
    occupied.write_bytes(b"someone else's thumbnail")
    source = write_jpeg(tmp_path / "same.png", (640, 480), with_exif=False)

    with pytest.raises(ThumbnailError, match="already exists"):
        _generator(root).from_image(source, "photos/2024/03/same.png")
    assert occupied.read_bytes() == b"someone else's thumbnail"


def test_video_thumbnail_from_extracted_frame(tmp_path: Path):
    root = tmp_path / "media"
    asset = _generator(root, StillFrame((1920, 1080))).from_video(tmp_path / "clip.mov", "videos/2024/03/clip.mov")

    assert asset.relative == ".thumbs/videos/2024/03/clip.jpg"
    assert (asset.width, asset.height) == (300, 169)
    leftovers = [p.name for p in asset.absolute.parent.iterdir()]
    assert leftovers == ["clip.jpg"]


def test_video_without_frame_is_thumbnail_unavailable(tmp_path: Path):
    root = tmp_path / "media"
    with pytest.raises(ThumbnailError, match="thumbnail unavailable"):
        _generator(root, NoFrame()).from_video(tmp_path / "broken.mp4", "videos/2024/03/broken.mp4")

    thumbs_dir = root / ".thumbs" / "videos" / "2024" / "03"
    assert list(thumbs_dir.iterdir()) == []


def test_real_ffmpeg_thumbnail(tmp_path: Path, generated_video_file: Path):
    generator = _generator(tmp_path / "media", FfmpegFrameExtractor("ffmpeg", offset_s=1.0, timeout_s=30))
    asset = generator.from_video(generated_video_file, "videos/2024/03/clip.mp4")

    assert (asset.width, asset.height) == (300, 169)


def test_short_video_falls_back_to_first_frame(tmp_path: Path, short_video_file: Path):
    generator = _generator(tmp_path / "media", FfmpegFrameExtractor("ffmpeg", offset_s=1.0, timeout_s=30))
    asset = generator.from_video(short_video_file, "videos/2024/03/short.mp4")

    assert asset.absolute.exists()
    assert max(asset.width, asset.height) <= 300


def test_unreadable_thumbnail_on_disk_is_discarded(tmp_path: Path, monkeypatch):
    monkeypatch.setattr("homevault.ingest.thumbnails.cv2.imread", lambda path: None)
    source = write_jpeg(tmp_path / "source.jpg", (640, 480), with_exif=False)
    root = tmp_path / "media"

    with pytest.raises(ThumbnailError, match="Failed to read generated thumbnail"):
        _generator(root).from_image(source, "photos/2024/03/source.jpg")
    assert not (root / ".thumbs" / "photos" / "2024" / "03" / "source.jpg").exists()
