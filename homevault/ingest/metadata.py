from __future__ import annotations

from datetime import datetime, timezone
from fractions import Fraction
from pathlib import Path
from typing import Any, Callable, Mapping, Optional, Tuple

from PIL import ExifTags, Image, UnidentifiedImageError

from homevault.core.logging import get_logger

from .errors import MetadataError
from .models import ExtractedMetadata

__all__ = ["extract_metadata", "format_exposure_time", "dms_to_degrees"]

EXIF_DATETIME_FORMAT = "%Y:%m:%d %H:%M:%S"

logger = get_logger(component="metadata_extractor")


def extract_metadata(path: Path) -> ExtractedMetadata:
    """Read the EXIF block of a still image.

    A missing or undecodable block yields an empty :class:`ExtractedMetadata`.
    Fields are parsed one by one so a single malformed tag only loses itself.

    Raises:
        MetadataError: The file itself could not be opened.
    """
    try:
        image = Image.open(path)
    except UnidentifiedImageError:
        logger.debug("metadata_unidentified_image", path=str(path))
        return ExtractedMetadata()
    except OSError as exc:
        raise MetadataError(f"failed to open {path}: {exc}") from exc

    with image:
        try:
            exif = image.getexif()
            exif_ifd = exif.get_ifd(ExifTags.IFD.Exif)
            gps_ifd = exif.get_ifd(ExifTags.IFD.GPSInfo)
        except Exception as exc:  # Pillow raises a variety of types on corrupt blocks
            logger.debug("metadata_block_malformed", path=str(path), error=str(exc))
            return ExtractedMetadata()

    meta = ExtractedMetadata()
    if not exif and not exif_ifd and not gps_ifd:
        return meta

    def tag(key: int) -> Any:
        value = exif_ifd.get(key)
        return exif.get(key) if value is None else value

    _assign(meta, "width", lambda: _positive_int(tag(ExifTags.Base.ExifImageWidth)))
    _assign(meta, "height", lambda: _positive_int(tag(ExifTags.Base.ExifImageHeight)))
    _assign(meta, "taken_at", lambda: _taken_at(tag))
    _assign(meta, "camera_make", lambda: _clean_text(tag(ExifTags.Base.Make)))
    _assign(meta, "camera_model", lambda: _clean_text(tag(ExifTags.Base.Model)))
    _assign(meta, "orientation", lambda: _orientation(tag(ExifTags.Base.Orientation)))
    _assign(meta, "iso", lambda: _positive_int(tag(ExifTags.Base.ISOSpeedRatings)))
    _assign(meta, "f_number", lambda: _rational_float(tag(ExifTags.Base.FNumber)))
    _assign(meta, "exposure_time", lambda: format_exposure_time(tag(ExifTags.Base.ExposureTime)))
    _assign(meta, "focal_length", lambda: _rational_float(tag(ExifTags.Base.FocalLength)))

    try:
        coordinates = _coordinates(gps_ifd)
    except (ArithmeticError, LookupError, TypeError, ValueError) as exc:
        logger.debug("metadata_field_unparseable", field="gps", error=str(exc))
        coordinates = None
    if coordinates is not None:
        meta.latitude, meta.longitude = coordinates

    return meta


def format_exposure_time(value: Any) -> Optional[str]:
    """Render an exposure rational as ``"1/125"``, or ``"2"`` when whole."""
    if value is None:
        return None
    numerator, denominator = _rational(value)
    if denominator == 0:
        return None
    if denominator == 1:
        return f"{numerator:d}"
    return f"{numerator:d}/{denominator:d}"


def dms_to_degrees(values: Any, ref: Any) -> float:
    """Convert an EXIF degrees/minutes/seconds triple into signed decimal degrees."""
    degrees, minutes, seconds = (_ratio(item) for item in tuple(values)[:3])
    decimal = degrees + minutes / 60.0 + seconds / 3600.0
    if _clean_text(ref) in {"S", "W"}:
        decimal = -decimal
    return decimal


def _assign(meta: ExtractedMetadata, name: str, parse: Callable[[], Any]) -> None:
    try:
        value = parse()
    except (ArithmeticError, LookupError, TypeError, ValueError) as exc:
        logger.debug("metadata_field_unparseable", field=name, error=str(exc))
        return
    if value is not None:
        setattr(meta, name, value)


def _rational(value: Any) -> Tuple[int, int]:
    if isinstance(value, (tuple, list)):
        if len(value) == 2 and all(isinstance(item, int) for item in value):
            return int(value[0]), int(value[1])
        value = value[0]
    if isinstance(value, float):
        value = Fraction(value).limit_denominator(1_000_000)
    numerator = getattr(value, "numerator", None)
    denominator = getattr(value, "denominator", None)
    if numerator is None or denominator is None:
        raise TypeError(f"not a rational: {value!r}")
    return int(numerator), int(denominator)


def _ratio(value: Any) -> float:
    numerator, denominator = _rational(value)
    if denominator == 0:
        raise ZeroDivisionError("zero denominator")
    return numerator / denominator


def _rational_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    numerator, denominator = _rational(value)
    if denominator == 0:
        return None
    return numerator / denominator


def _positive_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, (tuple, list)):
        value = value[0]
    number = int(value)
    return number if number > 0 else None


def _orientation(value: Any) -> Optional[int]:
    number = _positive_int(value)
    if number is None or not 1 <= number <= 8:
        return None
    return number


def _clean_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bytes):
        value = value.decode("utf-8", errors="replace")
    text = str(value).replace("\x00", "").strip().strip('"').strip()
    return text or None


def _taken_at(tag: Callable[[int], Any]) -> Optional[datetime]:
    raw = _clean_text(tag(ExifTags.Base.DateTimeOriginal)) or _clean_text(tag(ExifTags.Base.DateTime))
    if raw is None:
        return None
    taken = datetime.strptime(raw, EXIF_DATETIME_FORMAT)
    offset = _clean_text(tag(ExifTags.Base.OffsetTimeOriginal))
    if offset:
        try:
            return datetime.strptime(f"{raw} {offset}", f"{EXIF_DATETIME_FORMAT} %z")
        except ValueError:
            logger.debug("metadata_offset_unparseable", offset=offset)
    return taken.replace(tzinfo=timezone.utc)


def _coordinates(gps: Mapping[int, Any]) -> Optional[Tuple[float, float]]:
    if not gps:
        return None
    lat_values = gps.get(ExifTags.GPS.GPSLatitude)
    lon_values = gps.get(ExifTags.GPS.GPSLongitude)
    if lat_values is None or lon_values is None:
        return None
    latitude = dms_to_degrees(lat_values, gps.get(ExifTags.GPS.GPSLatitudeRef))
    longitude = dms_to_degrees(lon_values, gps.get(ExifTags.GPS.GPSLongitudeRef))
    if not (-90.0 <= latitude <= 90.0 and -180.0 <= longitude <= 180.0):
        raise ValueError(f"coordinates out of range: {latitude}, {longitude}")
    return latitude, longitude
