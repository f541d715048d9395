import os
import uuid
from collections.abc import Generator
from typing import Any

import psycopg
import pytest

from image_api.config.settings import Settings
from image_api.database.connection import apply_schema, close_pool, get_connection, init_pool
from image_api.database.models import ImageRecord


def _test_settings() -> Settings:
    os.environ.setdefault("DB_DATABASE", "image_api_test")
    return Settings()


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    return _test_settings()


@pytest.fixture(scope="session")
def integration_pool(test_settings: Settings) -> Generator[None, None, None]:
    try:
        init_pool(test_settings)
        apply_schema()
    except Exception as e:
        close_pool()
        pytest.skip(f"PostgreSQL test DB not available: {e}. Set DB_* env to run.")
    try:
        yield
    finally:
        close_pool()


@pytest.fixture
def db_conn(integration_pool: None) -> Generator[psycopg.Connection[Any], None, None]:
    with get_connection() as conn:
        yield conn


@pytest.fixture
def integration_cleanup(
    integration_pool: None,
) -> Generator[list[tuple[str, Any]], None, None]:
    cleanup: list[tuple[str, Any]] = []
    yield cleanup
    if not cleanup:
        return
    with get_connection() as conn:
        with conn.cursor() as cur:
            for table, row_id in cleanup:
                if table == "image_jobs":
                    cur.execute("DELETE FROM image_jobs WHERE id = %s", (row_id,))
            for table, row_id in cleanup:
                if table == "images":
                    cur.execute("DELETE FROM images WHERE id = %s", (row_id,))
        conn.commit()


@pytest.fixture
def make_record(
    integration_cleanup: list[tuple[str, Any]],
) -> Any:
    """Build an unsaved ImageRecord whose row is deleted after the test."""

    def _make(**overrides: Any) -> ImageRecord:
        values: dict[str, Any] = {
            "id": uuid.uuid4().hex,
            "blob_ref": uuid.uuid4().hex,
            "original_filename": "photo.jpg",
            "mime_type": "image/jpeg",
            "file_size_bytes": 1024,
            "uploaded_by": f"it-{uuid.uuid4().hex[:8]}",
        }
        values.update(overrides)
        integration_cleanup.append(("images", values["id"]))
        return ImageRecord(**values)

    return _make
