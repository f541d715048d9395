import json
import time
from typing import Any
from unittest.mock import MagicMock, patch

from image_api.extraction.base import BaseExtractor
from image_api.extraction.c2pa_extractor import C2paExtractor, has_manifest_marker
from image_api.extraction.exceptions import ExtractionError, ExtractionErrorKind
from image_api.extraction.exif_extractor import ExifExtractor
from image_api.extraction.iptc_extractor import IptcExtractor
from image_api.extraction.models import MetadataKind

NOT_AN_IMAGE = b"this is plain text, not an image"


class _SlowExtractor(BaseExtractor):
    kind = MetadataKind.EXIF
    name = "slow"

    def _extract(self, data: bytes) -> dict[str, Any] | None:
        time.sleep(1.0)
        return {"never": "returned"}


class _BrokenExtractor(BaseExtractor):
    kind = MetadataKind.IPTC
    name = "broken"

    def _extract(self, data: bytes) -> dict[str, Any] | None:
        raise RuntimeError("codec crashed")


class TestBaseExtractor:
    def test_timeout_yields_timeout_error_without_blocking(self) -> None:
        extractor = _SlowExtractor(timeout_seconds=0.05)

        started = time.perf_counter()
        outcome = extractor.extract(b"data")
        elapsed = time.perf_counter() - started

        assert outcome.error is not None
        assert outcome.error.kind is ExtractionErrorKind.TIMEOUT
        assert outcome.value is None
        assert elapsed < 0.5

    def test_unexpected_exception_becomes_malformed(self) -> None:
        outcome = _BrokenExtractor().extract(b"data")

        assert outcome.error is not None
        assert outcome.error.kind is ExtractionErrorKind.MALFORMED
        assert "codec crashed" in outcome.error.message

    def test_provenance_records_error(self) -> None:
        outcome = _BrokenExtractor().extract(b"data")

        entry = outcome.provenance()

        assert entry["state"] == "error"
        assert entry["extractor"] == "broken"
        assert entry["error_kind"] == "malformed"
        assert "extracted_at" in entry


class TestExifExtractor:
    def test_reads_canon_exif(self, exif_jpeg_bytes: bytes) -> None:
        outcome = ExifExtractor().extract(exif_jpeg_bytes)

        assert outcome.error is None
        assert outcome.value is not None
        assert outcome.value["Make"] == "Canon"
        assert outcome.value["Model"] == "Canon EOS 5D"
        assert outcome.value["ISO"] == 100
        assert outcome.value["FNumber"] == 2.8

    def test_gps_coordinates_are_decimal(self, exif_jpeg_bytes: bytes) -> None:
        outcome = ExifExtractor().extract(exif_jpeg_bytes)

        assert outcome.value is not None
        gps = outcome.value["GPS"]
        assert gps["latitude"] == 52.5
        assert gps["longitude"] == -1.25

    def test_skips_pointer_tags(self, exif_jpeg_bytes: bytes) -> None:
        outcome = ExifExtractor().extract(exif_jpeg_bytes)

        assert outcome.value is not None
        assert "ExifTag" not in outcome.value
        assert "GPSTag" not in outcome.value

    def test_absent_exif_is_not_an_error(self, plain_jpeg_bytes: bytes) -> None:
        outcome = ExifExtractor().extract(plain_jpeg_bytes)

        assert outcome.error is None
        assert outcome.value is None
        assert outcome.state == "absent"

    def test_malformed_exif(self, malformed_exif_jpeg_bytes: bytes) -> None:
        outcome = ExifExtractor().extract(malformed_exif_jpeg_bytes)

        assert outcome.error is not None
        assert outcome.error.kind is ExtractionErrorKind.MALFORMED

    def test_unrecognised_bytes_are_unsupported(self) -> None:
        outcome = ExifExtractor().extract(NOT_AN_IMAGE)

        assert outcome.error is not None
        assert outcome.error.kind is ExtractionErrorKind.UNSUPPORTED


class TestIptcExtractor:
    def test_reads_named_datasets(self, iptc_jpeg_bytes: bytes) -> None:
        outcome = IptcExtractor().extract(iptc_jpeg_bytes)

        assert outcome.error is None
        assert outcome.value == {
            "ObjectName": "Harbour at dawn",
            "Keywords": ["harbour", "boats"],
            "Creator": ["Jane Doe"],
            "Copyright": "(c) Example News",
        }

    def test_absent_iptc(self, plain_jpeg_bytes: bytes) -> None:
        outcome = IptcExtractor().extract(plain_jpeg_bytes)

        assert outcome.error is None
        assert outcome.value is None

    def test_png_has_no_iptc(self, plain_png_bytes: bytes) -> None:
        outcome = IptcExtractor().extract(plain_png_bytes)

        assert outcome.state == "absent"

    def test_unrecognised_bytes_are_unsupported(self) -> None:
        outcome = IptcExtractor().extract(NOT_AN_IMAGE)

        assert outcome.error is not None
        assert outcome.error.kind is ExtractionErrorKind.UNSUPPORTED


class _FakeC2paError(Exception):
    pass


def _fake_c2pa(manifest_json: str | None = None, error: Exception | None = None) -> MagicMock:
    fake = MagicMock()
    fake.C2paError = _FakeC2paError
    reader = fake.Reader.return_value.__enter__.return_value
    if error is not None:
        fake.Reader.side_effect = error
    else:
        reader.json.return_value = manifest_json
    return fake


def _manifest_store() -> dict[str, Any]:
    return {
        "active_manifest": "urn:uuid:1",
        "manifests": {
            "urn:uuid:1": {
                "claim_generator": "Example Camera/1.0",
                "title": "photo.jpg",
                "signature_info": {"issuer": "Example CA", "time": "2024-05-01T10:00:00Z"},
            }
        },
        "validation_status": [],
    }


class TestC2paExtractor:
    def test_marker_scan(self, plain_jpeg_bytes: bytes, c2pa_marked_jpeg_bytes: bytes) -> None:
        assert has_manifest_marker(plain_jpeg_bytes) is False
        assert has_manifest_marker(c2pa_marked_jpeg_bytes) is True

    def test_no_marker_skips_reader(self, plain_jpeg_bytes: bytes) -> None:
        fake = _fake_c2pa()
        with patch("image_api.extraction.c2pa_extractor.c2pa", fake):
            outcome = C2paExtractor().extract(plain_jpeg_bytes)

        assert outcome.state == "absent"
        fake.Reader.assert_not_called()

    def test_reads_manifest_store(self, c2pa_marked_jpeg_bytes: bytes) -> None:
        fake = _fake_c2pa(json.dumps(_manifest_store()))
        with patch("image_api.extraction.c2pa_extractor.c2pa", fake):
            outcome = C2paExtractor().extract(c2pa_marked_jpeg_bytes)

        assert outcome.error is None
        assert outcome.value is not None
        assert outcome.value["summary"]["issuer"] == "Example CA"
        assert outcome.value["summary"]["claim_generator"] == "Example Camera/1.0"
        assert fake.Reader.call_args.args[0] == "image/jpeg"

    def test_manifest_not_found_is_absent(self, c2pa_marked_jpeg_bytes: bytes) -> None:
        fake = _fake_c2pa(error=_FakeC2paError("ManifestNotFound: no manifest"))
        with patch("image_api.extraction.c2pa_extractor.c2pa", fake):
            outcome = C2paExtractor().extract(c2pa_marked_jpeg_bytes)

        assert outcome.error is None
        assert outcome.value is None

    def test_reader_error_is_malformed(self, c2pa_marked_jpeg_bytes: bytes) -> None:
        fake = _fake_c2pa(error=_FakeC2paError("ClaimDecoding: bad CBOR"))
        with patch("image_api.extraction.c2pa_extractor.c2pa", fake):
            outcome = C2paExtractor().extract(c2pa_marked_jpeg_bytes)

        assert outcome.error is not None
        assert outcome.error.kind is ExtractionErrorKind.MALFORMED

    def test_not_supported_is_unsupported(self, c2pa_marked_jpeg_bytes: bytes) -> None:
        fake = _fake_c2pa(error=_FakeC2paError("NotSupported: image/jpeg"))
        with patch("image_api.extraction.c2pa_extractor.c2pa", fake):
            outcome = C2paExtractor().extract(c2pa_marked_jpeg_bytes)

        assert outcome.error is not None
        assert outcome.error.kind is ExtractionErrorKind.UNSUPPORTED

    def test_marker_in_non_image_is_unsupported(self) -> None:
        outcome = C2paExtractor().extract(b"jumb c2pa but no image header")

        assert outcome.error is not None
        assert outcome.error.kind is ExtractionErrorKind.UNSUPPORTED


def test_extraction_error_keeps_kind() -> None:
    error = ExtractionError(ExtractionErrorKind.TIMEOUT, "late")
    assert error.kind is ExtractionErrorKind.TIMEOUT
    assert str(error) == "late"
