"""
Marker Map Moderation Platform
Import of exported map data: parsing plus reconciliation.

Parsing turns a ``.json`` or ``.sql`` upload into the canonical shape
``{"markers": [...], "suggestions": [...]}``. Reconciliation then matches
each record against existing rows on exact (lat, lng[, title]):

    markers      match → update            no match → create
    suggestions  match, reviewed → skip    match, pending → update
                 no match → create

Reconciliation is all-or-nothing: any failure rolls the whole import back
and re-raises. Line-level SQL parse problems are tolerated instead: the
offending line is skipped with a warning.

Usage:
    data = parse_import_file(upload.filename, upload.read())
    result = import_data(data)
    result["count"]          # records touched
"""

import json
import logging
import re

from markermap.core.exceptions import InvalidFormatError
from markermap.models import db
from markermap.models.marker import MapMarker, MapMarkerSuggestion
from markermap.services import marker_service, suggestion_service
from markermap.services.export_service import MARKERS_SECTION, SUGGESTIONS_SECTION
from markermap.services.sql_values import coerce_sql_value, split_sql_values
from markermap.services.validation import validate_marker_data, validate_suggestion_data

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = (".json", ".sql")

_INSERT_RE = re.compile(r"^INSERT INTO (\w+) \((.*?)\) VALUES \((.*)\);$")

_SECTION_TABLES = {
    "markers": MapMarker.__tablename__,
    "suggestions": MapMarkerSuggestion.__tablename__,
}

_MARKER_DROP_KEYS = ("id", "marker_id", "thread_id")
_SUGGESTION_DROP_KEYS = ("id", "suggestion_id")


# ═══════════════════════════════════════════════════════════════════════════
#  Parsing
# ═══════════════════════════════════════════════════════════════════════════

def parse_json_import(content: str) -> dict:
    try:
        data = json.loads(content)
    except json.JSONDecodeError as exc:
        raise InvalidFormatError(f"Invalid JSON file: {exc.msg} (line {exc.lineno})") from exc
    if not isinstance(data, dict) or "markers" not in data or "suggestions" not in data:
        raise InvalidFormatError(
            "Invalid map import file format: expected top-level 'markers' and 'suggestions'."
        )
    if not isinstance(data["markers"], list) or not isinstance(data["suggestions"], list):
        raise InvalidFormatError("Invalid map import file format: sections must be lists.")
    for section in ("markers", "suggestions"):
        for index, record in enumerate(data[section]):
            if not isinstance(record, dict):
                raise InvalidFormatError(
                    f"Invalid map import file format: {section}[{index}] is not an object."
                )
    return {"markers": data["markers"], "suggestions": data["suggestions"]}


def parse_insert_line(line: str) -> tuple[str, dict] | None:
    """Parse one INSERT statement into (table, record); None when it does not fit."""
    match = _INSERT_RE.match(line)
    if not match:
        return None
    table, column_text, value_text = match.groups()
    columns = [column.strip() for column in column_text.split(",")]
    values = [coerce_sql_value(token) for token in split_sql_values(value_text)]
    if len(columns) != len(values):
        return None
    return table, dict(zip(columns, values))


def parse_sql_import(content: str) -> dict:
    data = {"markers": [], "suggestions": []}
    section = None

    # Only "\n" ends a statement; exported strings may hold other line separators.
    for lineno, raw in enumerate(content.split("\n"), start=1):
        line = raw.strip()
        if not line:
            continue
        if line.startswith("--"):
            if line.startswith(SUGGESTIONS_SECTION):
                section = "suggestions"
            elif line.startswith(MARKERS_SECTION):
                section = "markers"
            continue
        if not line.startswith("INSERT INTO") or section is None:
            continue

        parsed = parse_insert_line(line)
        if parsed is None:
            logger.warning("Skipping unparseable import line %d", lineno,
                           extra={"event_type": "map.import_line_skipped",
                                  "context": {"line": line[:200]}})
            continue
        table, record = parsed
        if table != _SECTION_TABLES[section]:
            logger.warning("Skipping line %d: table %s outside section %s", lineno, table, section,
                           extra={"event_type": "map.import_line_skipped"})
            continue
        data[section].append(record)

    return data


def parse_import_file(filename: str, content) -> dict:
    """Dispatch on extension; only ``.json`` and ``.sql`` are accepted."""
    name = (filename or "").lower()
    if not name.endswith(ALLOWED_EXTENSIONS):
        raise InvalidFormatError("Only .json and .sql files can be imported.")
    if isinstance(content, bytes):
        try:
            content = content.decode("utf-8-sig")
        except UnicodeDecodeError as exc:
            raise InvalidFormatError("Import file must be UTF-8 encoded.") from exc
    if name.endswith(".json"):
        return parse_json_import(content)
    return parse_sql_import(content)


# ═══════════════════════════════════════════════════════════════════════════
#  Reconciliation
# ═══════════════════════════════════════════════════════════════════════════

def _without(record: dict, keys) -> dict:
    return {key: value for key, value in (record or {}).items() if key not in keys}


def _find_existing(model, clean: dict):
    query = model.query.filter(model.lat == clean["lat"], model.lng == clean["lng"])
    if clean.get("title"):
        query = query.filter(model.title == clean["title"])
    return query.order_by(model.id).first()


def _import_markers(records) -> dict:
    stats = {"created": 0, "updated": 0, "skipped": 0}
    for record in records:
        clean = validate_marker_data(_without(record, _MARKER_DROP_KEYS))
        existing = _find_existing(MapMarker, clean)
        if existing is not None:
            if marker_service.update_marker(existing, clean, commit=False) is None:
                raise RuntimeError(f"Failed to update marker {existing.id} during import")
            stats["updated"] += 1
        else:
            marker_service.create_marker(clean, commit=False)
            stats["created"] += 1
    return stats


def _import_suggestions(records) -> dict:
    stats = {"created": 0, "updated": 0, "skipped": 0}
    for record in records:
        clean = validate_suggestion_data(_without(record, _SUGGESTION_DROP_KEYS))
        existing = _find_existing(MapMarkerSuggestion, clean)
        if existing is not None:
            if not existing.is_pending:
                stats["skipped"] += 1
                continue
            suggestion_service.update_suggestion(existing, clean, commit=False)
            stats["updated"] += 1
        else:
            suggestion_service.create_suggestion(clean, commit=False)
            stats["created"] += 1
    return stats


def import_data(data: dict) -> dict:
    """Reconcile parsed records in one transaction.

    Returns:
        {"marker_stats": {...}, "marker_count": int,
         "suggestion_stats": {...}, "suggestion_count": int, "count": int}

    Raises:
        Whatever failed; nothing from this import is left in the database.
    """
    try:
        marker_stats = _import_markers(data.get("markers") or [])
        suggestion_stats = _import_suggestions(data.get("suggestions") or [])
        db.session.commit()
    except Exception:
        db.session.rollback()
        logger.exception("Map import failed; all changes rolled back",
                         extra={"event_type": "map.import_failed"})
        raise

    marker_count = sum(marker_stats.values())
    suggestion_count = sum(suggestion_stats.values())
    result = {
        "marker_stats": marker_stats,
        "marker_count": marker_count,
        "suggestion_stats": suggestion_stats,
        "suggestion_count": suggestion_count,
        "count": marker_count + suggestion_count,
    }
    logger.info("Map import completed: %d record(s)", result["count"],
                extra={"event_type": "map.imported", "context": result})
    return result
