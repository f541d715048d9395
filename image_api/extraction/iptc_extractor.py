import io
from typing import Any

from PIL import IptcImagePlugin, Image, UnidentifiedImageError

from image_api.extraction.base import BaseExtractor
from image_api.extraction.exceptions import ExtractionError, ExtractionErrorKind
from image_api.extraction.models import MetadataKind

# IPTC-IIM application record (record 2) datasets
DATASET_NAMES: dict[int, str] = {
    5: "ObjectName",
    7: "EditStatus",
    10: "Urgency",
    15: "Category",
    20: "SupplementalCategories",
    25: "Keywords",
    40: "SpecialInstructions",
    55: "DateCreated",
    60: "TimeCreated",
    80: "Creator",
    85: "CreatorTitle",
    90: "City",
    92: "Sublocation",
    95: "ProvinceState",
    100: "CountryCode",
    101: "Country",
    103: "TransmissionReference",
    105: "Headline",
    110: "Credit",
    115: "Source",
    116: "Copyright",
    118: "Contact",
    120: "Caption",
    122: "CaptionWriter",
}
REPEATABLE = frozenset(
    {"SupplementalCategories", "Keywords", "Creator", "CreatorTitle", "Contact", "CaptionWriter"}
)
_APPLICATION_RECORD = 2
_RECORD_VERSION = 0
_UTF8_ESCAPE = b"\x1b%G"


def _decode(raw: bytes, utf8: bool) -> str:
    if utf8:
        return raw.decode("utf-8", errors="replace").strip()
    try:
        return raw.decode("utf-8").strip()
    except UnicodeDecodeError:
        return raw.decode("latin-1").strip()


class IptcExtractor(BaseExtractor):
    """Extracts IPTC-IIM descriptive and rights metadata via Pillow."""

    kind = MetadataKind.IPTC
    name = "pillow-iptc"

    def _extract(self, data: bytes) -> dict[str, Any] | None:
        try:
            with Image.open(io.BytesIO(data)) as img:
                info = IptcImagePlugin.getiptcinfo(img)
        except UnidentifiedImageError as exc:
            raise ExtractionError(
                ExtractionErrorKind.UNSUPPORTED, "Not a recognised image format"
            ) from exc
        except SyntaxError as exc:
            raise ExtractionError(
                ExtractionErrorKind.MALFORMED, f"Invalid IPTC block: {exc}"
            ) from exc
        if not info:
            return None

        charset = info.get((1, 90))
        utf8 = isinstance(charset, bytes) and charset.startswith(_UTF8_ESCAPE)

        result: dict[str, Any] = {}
        for (record, dataset), raw in sorted(info.items()):
            if record != _APPLICATION_RECORD or dataset == _RECORD_VERSION:
                continue
            name = DATASET_NAMES.get(dataset, f"{record}:{dataset:03d}")
            values = raw if isinstance(raw, list) else [raw]
            decoded = [_decode(v, utf8) for v in values if isinstance(v, bytes)]
            decoded = [v for v in decoded if v]
            if not decoded:
                continue
            if name in REPEATABLE or len(decoded) > 1:
                result[name] = decoded
            else:
                result[name] = decoded[0]
        return result or None
