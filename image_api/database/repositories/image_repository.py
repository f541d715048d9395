from collections.abc import Collection, Generator, Mapping
from contextlib import contextmanager
from typing import Any

import psycopg
from psycopg import sql
from psycopg.rows import dict_row
from psycopg.types.json import Jsonb

from image_api.database.connection import get_connection
from image_api.database.exceptions import (
    DuplicateImageError,
    RecordStoreError,
    RecordStoreUnavailableError,
)
from image_api.database.models import (
    DESCRIPTIVE_FIELDS,
    EXTRACTED_FIELDS,
    JSON_FIELDS,
    ImageFilter,
    ImagePage,
    ImageRecord,
    LifecycleStatus,
    MetadataStatus,
)
from image_api.database.repositories.base import BaseImageRepository

_COLUMNS = (
    "id",
    "blob_ref",
    "original_filename",
    "mime_type",
    "file_size_bytes",
    "uploaded_by",
    "title",
    "description",
    "tags",
    "width",
    "height",
    "exif",
    "iptc",
    "c2pa",
    "c2pa_verified",
    "c2pa_signature_valid",
    "c2pa_issuer",
    "metadata_status",
    "metadata_attempts",
    "metadata_error",
    "metadata_provenance",
    "claimed_at",
    "status",
    "created_at",
    "updated_at",
    "deleted_at",
)

_CONDITIONAL_FIELDS = frozenset(EXTRACTED_FIELDS) | {"metadata_attempts", "metadata_error"}
_UPDATABLE_FIELDS = frozenset(DESCRIPTIVE_FIELDS)


@contextmanager
def _translate_errors() -> Generator[None, None, None]:
    try:
        yield
    except psycopg.errors.UniqueViolation as exc:
        raise DuplicateImageError(str(exc)) from exc
    except psycopg.OperationalError as exc:
        raise RecordStoreUnavailableError(f"Record store unavailable: {exc}") from exc


def _adapt(column: str, value: Any) -> Any:
    if column in JSON_FIELDS and value is not None:
        return Jsonb(value)
    if isinstance(value, (MetadataStatus, LifecycleStatus)):
        return value.value
    return value


def _assignments(
    fields: Mapping[str, Any], allowed: frozenset[str]
) -> tuple[list[sql.Composable], list[Any]]:
    parts: list[sql.Composable] = []
    params: list[Any] = []
    for column, value in fields.items():
        if column not in allowed:
            raise ValueError(f"Column '{column}' cannot be written here")
        parts.append(sql.SQL("{} = %s").format(sql.Identifier(column)))
        params.append(_adapt(column, value))
    return parts, params


def _row_to_record(row: dict[str, Any]) -> ImageRecord:
    return ImageRecord(
        id=row["id"],
        blob_ref=row["blob_ref"],
        original_filename=row["original_filename"],
        mime_type=row["mime_type"],
        file_size_bytes=row["file_size_bytes"],
        uploaded_by=row["uploaded_by"],
        title=row["title"],
        description=row["description"],
        tags=list(row["tags"] or []),
        width=row["width"],
        height=row["height"],
        exif=row["exif"],
        iptc=row["iptc"],
        c2pa=row["c2pa"],
        c2pa_verified=row["c2pa_verified"],
        c2pa_signature_valid=row["c2pa_signature_valid"],
        c2pa_issuer=row["c2pa_issuer"],
        metadata_status=MetadataStatus(row["metadata_status"]),
        metadata_attempts=row["metadata_attempts"],
        metadata_error=row["metadata_error"],
        metadata_provenance=row["metadata_provenance"],
        claimed_at=row["claimed_at"],
        status=LifecycleStatus(row["status"]),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        deleted_at=row["deleted_at"],
    )


class ImageRepository(BaseImageRepository):
    """Database operations for the images table."""

    _SELECT = sql.SQL("SELECT {} FROM images").format(
        sql.SQL(", ").join(sql.Identifier(c) for c in _COLUMNS)
    )

    def insert(self, record: ImageRecord) -> ImageRecord:
        columns = [c for c in _COLUMNS if c not in ("created_at", "updated_at")]
        query = sql.SQL(
            "INSERT INTO images ({}) VALUES ({}) RETURNING created_at, updated_at"
        ).format(
            sql.SQL(", ").join(sql.Identifier(c) for c in columns),
            sql.SQL(", ").join(sql.Placeholder() for _ in columns),
        )
        params = [_adapt(c, getattr(record, c)) for c in columns]
        with _translate_errors(), get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, params)
                row = cur.fetchone()
            conn.commit()
        if row is None:
            raise RecordStoreError(f"Insert of image {record.id} returned no row")
        record.created_at = row["created_at"]
        record.updated_at = row["updated_at"]
        return record

    def find_by_id(self, image_id: str) -> ImageRecord | None:
        query = self._SELECT + sql.SQL(" WHERE id = %s")
        with _translate_errors(), get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(query, (image_id,))
                row = cur.fetchone()
        if row is None:
            return None
        return _row_to_record(row)

    def conditional_update(
        self,
        image_id: str,
        expected: Collection[MetadataStatus],
        new_status: MetadataStatus,
        fields: Mapping[str, Any] | None = None,
        stale_after_seconds: float | None = None,
    ) -> bool:
        parts, params = _assignments(fields or {}, _CONDITIONAL_FIELDS)
        if new_status is MetadataStatus.PROCESSING:
            parts.append(sql.SQL("claimed_at = NOW()"))
        set_clause = sql.SQL(", ").join(
            [sql.SQL("metadata_status = %s"), sql.SQL("updated_at = NOW()"), *parts]
        )
        condition = sql.SQL("metadata_status = ANY(%s)")
        where_params: list[Any] = [[s.value for s in expected]]
        if stale_after_seconds is not None:
            condition = sql.SQL(
                "({} OR (metadata_status = 'processing' "
                "AND COALESCE(claimed_at, updated_at) < NOW() - make_interval(secs => %s)))"
            ).format(condition)
            where_params.append(stale_after_seconds)
        query = sql.SQL("UPDATE images SET {} WHERE id = %s AND {}").format(
            set_clause, condition
        )
        with _translate_errors(), get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(query, [new_status.value, *params, image_id, *where_params])
                updated = cur.rowcount == 1
            conn.commit()
        return updated

    def list_by_filter(self, image_filter: ImageFilter) -> ImagePage:
        conditions: list[sql.Composable] = []
        params: list[Any] = []
        if image_filter.status is None:
            conditions.append(sql.SQL("status <> %s"))
            params.append(LifecycleStatus.DELETED.value)
        else:
            conditions.append(sql.SQL("status = %s"))
            params.append(image_filter.status.value)
        if image_filter.metadata_status is not None:
            conditions.append(sql.SQL("metadata_status = %s"))
            params.append(image_filter.metadata_status.value)
        if image_filter.uploaded_by is not None:
            conditions.append(sql.SQL("uploaded_by = %s"))
            params.append(image_filter.uploaded_by)
        if image_filter.created_from is not None:
            conditions.append(sql.SQL("created_at >= %s"))
            params.append(image_filter.created_from)
        if image_filter.created_to is not None:
            conditions.append(sql.SQL("created_at < %s"))
            params.append(image_filter.created_to)
        where = sql.SQL(" WHERE ") + sql.SQL(" AND ").join(conditions)
        order = sql.SQL(" ORDER BY {} {}, id").format(
            sql.Identifier(image_filter.sort),
            sql.SQL("DESC" if image_filter.descending else "ASC"),
        )
        page_query = self._SELECT + where + order + sql.SQL(" LIMIT %s OFFSET %s")
        count_query = sql.SQL("SELECT COUNT(*) AS total FROM images") + where

        with _translate_errors(), get_connection() as conn:
            with conn.cursor(row_factory=dict_row) as cur:
                cur.execute(count_query, params)
                count_row = cur.fetchone()
                cur.execute(page_query, [*params, image_filter.limit, image_filter.offset])
                rows = cur.fetchall()

        return ImagePage(
            items=[_row_to_record(r) for r in rows],
            total=count_row["total"] if count_row else 0,
            page=image_filter.page,
            limit=image_filter.limit,
        )

    def update_fields(self, image_id: str, fields: Mapping[str, Any]) -> ImageRecord | None:
        if fields:
            parts, params = _assignments(fields, _UPDATABLE_FIELDS)
            query = sql.SQL("UPDATE images SET {} WHERE id = %s").format(
                sql.SQL(", ").join([*parts, sql.SQL("updated_at = NOW()")])
            )
            with _translate_errors(), get_connection() as conn:
                conn.execute(query, [*params, image_id])
                conn.commit()
        return self.find_by_id(image_id)

    def delete(self, image_id: str) -> bool:
        with _translate_errors(), get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute("DELETE FROM images WHERE id = %s", (image_id,))
                deleted = cur.rowcount == 1
            conn.commit()
        return deleted
