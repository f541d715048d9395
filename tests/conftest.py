import io
import os
import struct

import piexif
import pytest
from PIL import Image


def _jpeg_bytes(size: tuple[int, int] = (64, 48), **save_kwargs: object) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", size, color="blue").save(buf, format="JPEG", **save_kwargs)
    return buf.getvalue()


def insert_after_soi(jpeg: bytes, segment: bytes) -> bytes:
    """Splice a marker segment into a JPEG right after the SOI marker."""
    assert jpeg[:2] == b"\xff\xd8"
    return jpeg[:2] + segment + jpeg[2:]


def iptc_dataset(dataset: int, value: str) -> bytes:
    raw = value.encode("utf-8")
    return bytes([0x1C, 2, dataset]) + struct.pack(">H", len(raw)) + raw


def photoshop_app13(iptc: bytes) -> bytes:
    """APP13 segment holding one IPTC-NAA (0x0404) image resource."""
    resource = b"8BIM" + b"\x04\x04" + b"\x00\x00" + struct.pack(">I", len(iptc)) + iptc
    if len(iptc) % 2:
        resource += b"\x00"
    payload = b"Photoshop 3.0\x00" + resource
    return b"\xff\xed" + struct.pack(">H", len(payload) + 2) + payload


def canon_exif() -> bytes:
    return piexif.dump(
        {
            "0th": {
                piexif.ImageIFD.Make: b"Canon",
                piexif.ImageIFD.Model: b"Canon EOS 5D",
            },
            "Exif": {
                piexif.ExifIFD.ISOSpeedRatings: 100,
                piexif.ExifIFD.FNumber: (28, 10),
            },
            "GPS": {
                piexif.GPSIFD.GPSLatitudeRef: b"N",
                piexif.GPSIFD.GPSLatitude: ((52, 1), (30, 1), (0, 1)),
                piexif.GPSIFD.GPSLongitudeRef: b"W",
                piexif.GPSIFD.GPSLongitude: ((1, 1), (15, 1), (0, 1)),
            },
            "1st": {},
            "thumbnail": None,
        }
    )


@pytest.fixture()
def plain_jpeg_bytes() -> bytes:
    """A 64x48 JPEG with no EXIF, IPTC or C2PA metadata."""
    return _jpeg_bytes()


@pytest.fixture()
def plain_png_bytes() -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (32, 16), color="red").save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture()
def exif_jpeg_bytes() -> bytes:
    """A 64x48 JPEG whose EXIF says it was taken by a Canon at ISO 100."""
    return _jpeg_bytes(exif=canon_exif())


@pytest.fixture()
def large_exif_jpeg_bytes() -> bytes:
    """Roughly 2 MB of noise with the Canon EXIF block."""
    img = Image.frombytes("RGB", (1024, 1024), os.urandom(1024 * 1024 * 3))
    buf = io.BytesIO()
    img.save(buf, format="JPEG", quality=95, exif=canon_exif())
    return buf.getvalue()


@pytest.fixture()
def iptc_jpeg_bytes() -> bytes:
    iptc = (
        iptc_dataset(5, "Harbour at dawn")
        + iptc_dataset(25, "harbour")
        + iptc_dataset(25, "boats")
        + iptc_dataset(80, "Jane Doe")
        + iptc_dataset(116, "(c) Example News")
    )
    return insert_after_soi(_jpeg_bytes(), photoshop_app13(iptc))


@pytest.fixture()
def malformed_exif_jpeg_bytes() -> bytes:
    """A JPEG whose APP1 EXIF block points its first IFD past the end of the data."""
    exif = b"Exif\x00\x00" + b"II*\x00" + b"\xff\xff\xff\x00"
    segment = b"\xff\xe1" + struct.pack(">H", len(exif) + 2) + exif
    return insert_after_soi(_jpeg_bytes(), segment)


@pytest.fixture()
def c2pa_marked_jpeg_bytes() -> bytes:
    """A JPEG carrying the JUMBF and c2pa byte markers (content is not a real manifest)."""
    return _jpeg_bytes() + b"\x00\x00\x00\x20jumb\x00\x00\x00\x18jumdc2pa"


@pytest.fixture()
def malformed_exif_iptc_jpeg_bytes(malformed_exif_jpeg_bytes: bytes) -> bytes:
    """Broken EXIF block next to well-formed IPTC, and no C2PA."""
    iptc = iptc_dataset(5, "Harbour at dawn") + iptc_dataset(80, "Jane Doe")
    return insert_after_soi(malformed_exif_jpeg_bytes, photoshop_app13(iptc))
