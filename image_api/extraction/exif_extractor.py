import io
import struct
from typing import Any

import piexif
from PIL import Image, UnidentifiedImageError

from image_api.extraction.base import BaseExtractor
from image_api.extraction.exceptions import ExtractionError, ExtractionErrorKind
from image_api.extraction.models import MetadataKind

# piexif IFD name -> piexif.TAGS group
_FLATTENED_IFDS = {"0th": "Image", "Exif": "Exif"}

_SKIPPED_TAGS = frozenset(
    {
        "MakerNote",
        "JPEGTables",
        "PrintImageMatching",
        "StripOffsets",
        "StripByteCounts",
        "TileOffsets",
        "TileByteCounts",
        "ExifTag",
        "GPSTag",
        "InteroperabilityTag",
    }
)
_RATIONAL_TYPES = frozenset({piexif.TYPES.Rational, piexif.TYPES.SRational})
_USER_COMMENT_PREFIX_LENGTH = 8


def _ratio(value: Any) -> float | None:
    num, den = value
    if not den:
        return None
    return float(num) / float(den)


def _decode_text(raw: bytes) -> str | None:
    """Decode an ASCII/UNDEFINED tag; binary payloads yield None."""
    text = raw.rstrip(b"\x00").decode("utf-8", errors="replace").strip()
    if not text or not all(ch.isprintable() or ch.isspace() for ch in text):
        return None
    return text


def _convert(tag_name: str, value: Any, tag_type: int) -> Any:
    if tag_type in _RATIONAL_TYPES:
        if value and isinstance(value[0], tuple):
            return [_ratio(v) for v in value]
        return _ratio(value)
    if isinstance(value, bytes):
        if tag_name == "UserComment":
            value = value[_USER_COMMENT_PREFIX_LENGTH:]
        return _decode_text(value)
    if isinstance(value, tuple):
        return list(value)
    return value


def _named_tags(ifd: dict[int, Any], group: str) -> dict[str, Any]:
    named: dict[str, Any] = {}
    definitions = piexif.TAGS[group]
    for tag, value in ifd.items():
        definition = definitions.get(tag)
        if definition is None:
            continue
        tag_name = definition["name"]
        if tag_name in _SKIPPED_TAGS:
            continue
        converted = _convert(tag_name, value, definition["type"])
        if converted is not None:
            named[tag_name] = converted
    return named


def _dms_to_degrees(dms: Any, ref: Any) -> float | None:
    try:
        degrees, minutes, seconds = (_ratio(part) for part in dms)
    except (TypeError, ValueError):
        return None
    if degrees is None or minutes is None or seconds is None:
        return None
    result = degrees + minutes / 60.0 + seconds / 3600.0
    if ref in (b"S", b"W", "S", "W"):
        result = -result
    return round(result, 7)


def _gps_coordinates(gps_ifd: dict[int, Any]) -> dict[str, float]:
    coords: dict[str, float] = {}
    latitude = gps_ifd.get(piexif.GPSIFD.GPSLatitude)
    longitude = gps_ifd.get(piexif.GPSIFD.GPSLongitude)
    if latitude:
        value = _dms_to_degrees(latitude, gps_ifd.get(piexif.GPSIFD.GPSLatitudeRef))
        if value is not None:
            coords["latitude"] = value
    if longitude:
        value = _dms_to_degrees(longitude, gps_ifd.get(piexif.GPSIFD.GPSLongitudeRef))
        if value is not None:
            coords["longitude"] = value
    return coords


class ExifExtractor(BaseExtractor):
    """Extracts camera EXIF metadata using Pillow to locate the block and piexif to decode it."""

    kind = MetadataKind.EXIF
    name = "piexif"

    def _extract(self, data: bytes) -> dict[str, Any] | None:
        raw = self._read_exif_block(data)
        if raw is None:
            return None
        try:
            exif_dict = piexif.load(raw)
        except (ValueError, struct.error, IndexError, KeyError, TypeError) as exc:
            raise ExtractionError(
                ExtractionErrorKind.MALFORMED, f"Unreadable EXIF block: {exc}"
            ) from exc

        result: dict[str, Any] = {}
        for ifd_name, group in _FLATTENED_IFDS.items():
            result.update(_named_tags(exif_dict.get(ifd_name) or {}, group))

        gps_ifd = exif_dict.get("GPS") or {}
        if gps_ifd:
            gps = _named_tags(gps_ifd, "GPS")
            gps.update(_gps_coordinates(gps_ifd))
            if gps:
                result["GPS"] = gps

        iso = result.get("ISOSpeedRatings")
        if iso is not None:
            result["ISO"] = iso[0] if isinstance(iso, list) else iso
        return result or None

    @staticmethod
    def _read_exif_block(data: bytes) -> bytes | None:
        try:
            with Image.open(io.BytesIO(data)) as img:
                raw = img.info.get("exif")
        except UnidentifiedImageError as exc:
            raise ExtractionError(
                ExtractionErrorKind.UNSUPPORTED, "Not a recognised image format"
            ) from exc
        if not raw:
            return None
        if isinstance(raw, bytes) and (raw.startswith(b"Exif") or raw[:2] in (b"II", b"MM")):
            return raw
        raise ExtractionError(ExtractionErrorKind.MALFORMED, "EXIF block has no TIFF header")
