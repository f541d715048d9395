import io
import json
from typing import Any

import c2pa
from PIL import Image, UnidentifiedImageError

from image_api.extraction.base import BaseExtractor
from image_api.extraction.exceptions import ExtractionError, ExtractionErrorKind
from image_api.extraction.models import MetadataKind

# JUMBF superbox type; C2PA manifest stores are JUMBF boxes labelled "c2pa".
_JUMBF_BOX = b"jumb"
_C2PA_LABEL = b"c2pa"
_NOT_FOUND_MARKERS = ("ManifestNotFound", "JumbfNotFound", "no JUMBF data found")
_UNSUPPORTED_MARKERS = ("NotSupported", "UnsupportedType")


def has_manifest_marker(data: bytes) -> bool:
    """Cheap byte scan for an embedded C2PA manifest store."""
    return _JUMBF_BOX in data and _C2PA_LABEL in data


def _sniff_mime_type(data: bytes) -> str:
    try:
        with Image.open(io.BytesIO(data)) as img:
            image_format = img.format
    except UnidentifiedImageError as exc:
        raise ExtractionError(
            ExtractionErrorKind.UNSUPPORTED, "Not a recognised image format"
        ) from exc
    mime_type = Image.MIME.get(image_format or "")
    if mime_type is None:
        raise ExtractionError(
            ExtractionErrorKind.UNSUPPORTED, f"No MIME type for format {image_format}"
        )
    return mime_type


def _summarize(store: dict[str, Any]) -> dict[str, Any]:
    manifests = store.get("manifests") or {}
    active_label = store.get("active_manifest")
    active = manifests.get(active_label) or {}
    signature = active.get("signature_info") or {}
    return {
        "active_manifest": active_label,
        "manifest_count": len(manifests),
        "claim_generator": active.get("claim_generator"),
        "title": active.get("title"),
        "issuer": signature.get("issuer"),
        "signed_at": signature.get("time"),
        "validation_codes": [
            status.get("code") for status in store.get("validation_status") or []
        ],
    }


class C2paExtractor(BaseExtractor):
    """Reads C2PA content credentials with the c2pa-python Reader."""

    kind = MetadataKind.C2PA
    name = "c2pa-python"

    def _extract(self, data: bytes) -> dict[str, Any] | None:
        if not has_manifest_marker(data):
            return None
        mime_type = _sniff_mime_type(data)
        try:
            with c2pa.Reader(mime_type, io.BytesIO(data)) as reader:
                manifest_json = reader.json()
        except c2pa.C2paError as exc:
            described = f"{type(exc).__name__}: {exc}"
            if any(marker in described for marker in _NOT_FOUND_MARKERS):
                return None
            if any(marker in described for marker in _UNSUPPORTED_MARKERS):
                raise ExtractionError(ExtractionErrorKind.UNSUPPORTED, described) from exc
            raise ExtractionError(ExtractionErrorKind.MALFORMED, described) from exc

        try:
            store = json.loads(manifest_json)
        except json.JSONDecodeError as exc:
            raise ExtractionError(
                ExtractionErrorKind.MALFORMED, f"Manifest store is not JSON: {exc}"
            ) from exc
        if not isinstance(store, dict) or not store.get("manifests"):
            return None

        store["summary"] = _summarize(store)
        return store
