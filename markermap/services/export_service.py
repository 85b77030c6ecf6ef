"""
Marker Map Moderation Platform
Export of markers and suggestions as JSON or as INSERT-statement text.

Both formats carry the same canonical shape the importer reads back:

    {"markers": [flat record, ...], "suggestions": [flat record, ...]}

The text format puts one INSERT per line under section comments:

    -- Map Markers Export 2026-10-19 12:00:00

    -- Markers
    INSERT INTO xf_map_markers (id, lat, lng, title, ...) VALUES (1, 51.5, -0.09, 'Lake Park', ...);

    -- Marker Suggestions
    INSERT INTO xf_map_marker_suggestions (...) VALUES (...);

No temp files: content is built and returned in memory.
"""

import json
import logging
from datetime import datetime, timezone

from markermap.core.exceptions import InvalidFormatError
from markermap.models.marker import MapMarker, MapMarkerSuggestion
from markermap.services.sql_values import quote_sql_value

logger = logging.getLogger(__name__)

EXPORT_FORMATS = {
    "json": "application/json",
    "sql": "text/plain",
}
EXPORT_FILENAME_PREFIX = "sylphian_map_export"

MARKERS_SECTION = "-- Markers"
SUGGESTIONS_SECTION = "-- Marker Suggestions"


def record_of(obj) -> dict:
    """Flat column → value dict for one model row."""
    return {column.key: getattr(obj, column.key) for column in obj.__table__.columns}


def _json_default(value):
    if isinstance(value, datetime):
        return value.isoformat()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def export_json(markers, suggestions) -> str:
    document = {
        "markers": [record_of(m) for m in markers],
        "suggestions": [record_of(s) for s in suggestions],
    }
    return json.dumps(document, indent=4, ensure_ascii=False, default=_json_default)


def _insert_line(table: str, record: dict) -> str:
    columns = ", ".join(record.keys())
    values = ", ".join(quote_sql_value(value) for value in record.values())
    return f"INSERT INTO {table} ({columns}) VALUES ({values});"


def export_sql(markers, suggestions) -> str:
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")
    lines = [f"-- Map Markers Export {stamp}", "", MARKERS_SECTION]
    lines.extend(_insert_line(MapMarker.__tablename__, record_of(m)) for m in markers)
    lines.extend(["", SUGGESTIONS_SECTION])
    lines.extend(
        _insert_line(MapMarkerSuggestion.__tablename__, record_of(s)) for s in suggestions
    )
    return "\n".join(lines) + "\n"


def build_export(fmt: str):
    """Render every marker plus the pending suggestions.

    Returns:
        (content, mimetype, filename)

    Raises:
        InvalidFormatError: ``fmt`` is neither json nor sql.
    """
    fmt = (fmt or "json").lower()
    if fmt not in EXPORT_FORMATS:
        raise InvalidFormatError(f"Unsupported export format '{fmt}'. Supported: json, sql.")

    markers = MapMarker.query.order_by(MapMarker.id).all()
    suggestions = (
        MapMarkerSuggestion.query
        .filter_by(status="pending")
        .order_by(MapMarkerSuggestion.id)
        .all()
    )
    content = export_json(markers, suggestions) if fmt == "json" else export_sql(markers, suggestions)
    filename = f"{EXPORT_FILENAME_PREFIX}_{datetime.now(timezone.utc).strftime('%Y-%m-%d')}.{fmt}"

    logger.info(
        "Map export generated: %d markers, %d suggestions (%s)",
        len(markers), len(suggestions), fmt,
        extra={"event_type": "map.exported",
               "context": {"format": fmt, "markers": len(markers),
                           "suggestions": len(suggestions)}},
    )
    return content, EXPORT_FORMATS[fmt], filename
