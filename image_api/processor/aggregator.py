import io
from collections.abc import Collection, Sequence
from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any

from PIL import Image, UnidentifiedImageError

from image_api.config.settings import Settings
from image_api.extraction.base import BaseExtractor
from image_api.extraction.exceptions import ExtractionErrorKind
from image_api.extraction.factory import ExtractorFactory
from image_api.extraction.models import ExtractionOutcome, MetadataKind
from image_api.logging.logger import Log
from image_api.processor.exceptions import AggregateFailure, AllExtractorsFailedError
from image_api.processor.models import AggregateExtractionResult

_SIGNATURE_CODE_PREFIXES = ("claimSignature.", "signingCredential.", "timeStamp.")
_SIGNATURE_SUCCESS_CODES = frozenset(
    {
        "claimSignature.validated",
        "claimSignature.insideValidity",
        "signingCredential.trusted",
        "timeStamp.validated",
        "timeStamp.trusted",
    }
)
_VALID_STATES = frozenset({"Valid", "Trusted"})


def _positive_int(value: Any) -> int | None:
    if isinstance(value, list):
        value = value[0] if value else None
    if isinstance(value, int) and not isinstance(value, bool) and value > 0:
        return value
    return None


def exif_dimensions(exif: dict[str, Any] | None) -> tuple[int, int] | None:
    """Pixel size recorded in EXIF, if both dimensions are present."""
    if not exif:
        return None
    for width_tag, height_tag in (
        ("PixelXDimension", "PixelYDimension"),
        ("ImageWidth", "ImageLength"),
    ):
        width = _positive_int(exif.get(width_tag))
        height = _positive_int(exif.get(height_tag))
        if width and height:
            return width, height
    return None


def header_dimensions(data: bytes) -> tuple[int, int] | None:
    """Pixel size from the format header. Pillow reads the header only."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.size
    except (UnidentifiedImageError, OSError, ValueError, EOFError):
        return None


def signature_valid(store: dict[str, Any]) -> bool:
    """Whether the manifest store's signature chain validated."""
    state = store.get("validation_state")
    if state is not None:
        return state in _VALID_STATES
    for status in store.get("validation_status") or []:
        code = status.get("code") or ""
        if code.startswith(_SIGNATURE_CODE_PREFIXES) and code not in _SIGNATURE_SUCCESS_CODES:
            return False
    return True


def first_trusted_issuer(store: dict[str, Any], trusted_issuers: Collection[str]) -> str | None:
    """Issuer of the first manifest, active one first, whose issuer is trusted.

    An empty trust list trusts every issuer.
    """
    manifests: dict[str, Any] = store.get("manifests") or {}
    active = store.get("active_manifest")
    labels = [active] if active in manifests else []
    labels += [label for label in manifests if label != active]
    for label in labels:
        issuer = (manifests[label].get("signature_info") or {}).get("issuer")
        if issuer and (not trusted_issuers or issuer in trusted_issuers):
            return issuer
    return None


class MetadataAggregator:
    """Runs all extractors concurrently over one image and reconciles the outcomes."""

    def __init__(
        self,
        extractors: Sequence[BaseExtractor],
        trusted_issuers: Collection[str] = (),
    ) -> None:
        kinds = [extractor.kind for extractor in extractors]
        if sorted(kinds) != sorted(MetadataKind):
            raise ValueError(f"Expected one extractor per metadata kind, got {kinds}")
        self._extractors = list(extractors)
        self._trusted_issuers = frozenset(trusted_issuers)

    def aggregate(self, data: bytes) -> AggregateExtractionResult:
        """Extract EXIF, IPTC and C2PA from ``data``; wait for all, never fail fast.

        Raises:
            AllExtractorsFailedError: if every extractor returned an error.
            AggregateFailure: if an extractor broke its never-raise contract.
        """
        outcomes = self._run_extractors(data)
        exif, iptc, c2pa = (
            outcomes[MetadataKind.EXIF],
            outcomes[MetadataKind.IPTC],
            outcomes[MetadataKind.C2PA],
        )

        errors = [o.error for o in (exif, iptc, c2pa) if o.error is not None]
        if len(errors) == len(outcomes):
            retryable = any(e.kind is ExtractionErrorKind.TIMEOUT for e in errors)
            raise AllExtractorsFailedError(
                "All extractors failed: " + "; ".join(str(e) for e in errors),
                permanent=not retryable,
            )

        dimensions = exif_dimensions(exif.value) or header_dimensions(data)
        width, height = dimensions if dimensions else (None, None)

        store = c2pa.value
        valid = signature_valid(store) if store is not None else None
        issuer = first_trusted_issuer(store, self._trusted_issuers) if store and valid else None

        Log.debug(
            f"Aggregated metadata: exif={exif.state} iptc={iptc.state} c2pa={c2pa.state}"
        )
        return AggregateExtractionResult(
            exif=exif,
            iptc=iptc,
            c2pa=c2pa,
            width=width,
            height=height,
            c2pa_verified=store is not None,
            c2pa_signature_valid=valid,
            c2pa_issuer=issuer,
        )

    def _run_extractors(self, data: bytes) -> dict[MetadataKind, ExtractionOutcome]:
        with ThreadPoolExecutor(
            max_workers=len(self._extractors), thread_name_prefix="aggregate"
        ) as pool:
            futures = {
                extractor.kind: pool.submit(extractor.extract, data)
                for extractor in self._extractors
            }
            wait(futures.values())

        outcomes: dict[MetadataKind, ExtractionOutcome] = {}
        for kind, future in futures.items():
            exc = future.exception()
            if exc is not None:
                raise AggregateFailure(f"{kind.value} extractor raised: {exc}") from exc
            outcomes[kind] = future.result()
        return outcomes


def build_aggregator(settings: Settings) -> MetadataAggregator:
    return MetadataAggregator(
        ExtractorFactory.create(settings),
        trusted_issuers=settings.c2pa_trusted_issuers,
    )
