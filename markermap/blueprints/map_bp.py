"""
Map Blueprint: public map data, marker management and suggestion review.

Routes (all under /api/v1/map):
  GET    ""                              – display payload (markers, types, map view)
  GET    /events                         – upcoming / running event markers
  GET    /markers                        – paged marker list           (moderator)
  GET    /markers/<mid>                  – single marker
  POST   /markers                        – create marker               (moderator)
  PUT    /markers/<mid>                  – update marker               (moderator)
  DELETE /markers/<mid>                  – delete marker               (moderator)
  POST   /suggestions                    – submit a suggestion
  GET    /suggestions                    – paged pending queue         (moderator)
  PUT    /suggestions/<sid>              – edit a pending suggestion   (moderator)
  POST   /suggestions/<sid>/approve      – approve → new marker        (moderator)
  POST   /suggestions/<sid>/reject       – reject                      (moderator)
  POST   /geocode                        – address → {lat, lng}

ValidationError / NotFoundError / GeocodingError raised by services are
mapped to JSON responses by the app-level handlers.
"""

import logging

from flask import Blueprint, current_app, jsonify, request

from markermap.auth import can_manage_map_markers, current_user_id, require_moderator
from markermap.integrations.geocoding_gateway import geocoding_gateway
from markermap.services import marker_service, suggestion_service
from markermap.services.suggestion_review import approve_suggestion, reject_suggestion
from markermap.services.thread_sync import (
    handle_marker_thread_updates,
    mark_thread_as_deleted,
    sync_marker_thread,
)
from markermap.services.validation import validate_marker_data
from markermap.utils.errors import E, api_error

logger = logging.getLogger(__name__)

map_bp = Blueprint("map", __name__, url_prefix="/api/v1/map")


# ── helpers ──────────────────────────────────────────────────────────────

def _page_args():
    page = request.args.get("page", 1, type=int)
    per_page = request.args.get("per_page", type=int)
    return max(page or 1, 1), per_page


def _paged(items, total, page, per_page, includes=None):
    per_page = per_page or current_app.config.get("MAP_MARKERS_PER_PAGE", 20)
    return jsonify({
        "items": [item.to_dict(includes=includes) for item in items],
        "total": total,
        "page": page,
        "per_page": per_page,
    })


def _includes():
    raw = request.args.get("include", "")
    return [part.strip() for part in raw.split(",") if part.strip()]


def _map_view():
    cfg = current_app.config
    return {
        "starting_lat": cfg.get("MAP_STARTING_LAT"),
        "starting_lng": cfg.get("MAP_STARTING_LNG"),
        "starting_zoom": cfg.get("MAP_STARTING_ZOOM"),
        "min_zoom": cfg.get("MAP_MIN_ZOOM"),
        "max_zoom": cfg.get("MAP_MAX_ZOOM"),
    }


# ═════════════════════════════════════════════════════════════════════════════
# PUBLIC MAP
# ═════════════════════════════════════════════════════════════════════════════

@map_bp.route("", methods=["GET"])
def map_index():
    """Display payload for the map UI; moderators also get ``all_markers``."""
    can_manage = can_manage_map_markers()
    type_filter = request.args.get("type") or None
    if can_manage:
        markers = marker_service.get_all_markers_unbounded(includes=["thread"])
        if type_filter:
            markers = [m for m in markers if m.type == type_filter]
    else:
        markers = marker_service.get_active_markers(type_filter=type_filter)

    payload = marker_service.process_markers_for_display(markers, can_manage)
    payload["map"] = _map_view()
    payload["can_manage"] = can_manage
    return jsonify(payload)


@map_bp.route("/events", methods=["GET"])
def list_events():
    limit = request.args.get("limit", 10, type=int)
    return jsonify(marker_service.get_event_markers(limit=max(1, min(limit or 10, 100))))


# ═════════════════════════════════════════════════════════════════════════════
# MARKERS
# ═════════════════════════════════════════════════════════════════════════════

@map_bp.route("/markers", methods=["GET"])
@require_moderator
def list_markers():
    page, per_page = _page_args()
    includes = _includes()
    items, total = marker_service.get_all_markers(includes=includes, page=page, per_page=per_page)
    return _paged(items, total, page, per_page, includes=includes)


@map_bp.route("/markers/<int:mid>", methods=["GET"])
def get_marker(mid):
    marker = marker_service.get_marker_or_fail(mid)
    if not marker.active and not can_manage_map_markers():
        return api_error(E.NOT_FOUND, "Map marker not found")
    return jsonify(marker.to_dict(includes=_includes()))


@map_bp.route("/markers", methods=["POST"])
@require_moderator
def create_marker():
    """Create a marker; its thread is created afterwards when requested.

    Body: { lat, lng, title, content?, icon?, icon_variant?, icon_color?,
            marker_color?, type?, active?, create_thread?, thread_lock?,
            start_date?, end_date? }
    """
    data = request.get_json(silent=True) or {}
    data.setdefault("user_id", current_user_id())
    marker = marker_service.create_marker(data)
    thread_ok = sync_marker_thread(marker, handle_marker_thread_updates)
    body = marker.to_dict()
    body["thread_synced"] = thread_ok
    return jsonify(body), 201


@map_bp.route("/markers/<int:mid>", methods=["PUT"])
@require_moderator
def update_marker(mid):
    marker = marker_service.get_marker_or_fail(mid)
    data = request.get_json(silent=True) or {}
    validate_marker_data(marker_service.merged_update_data(marker, data))
    updated = marker_service.update_marker(marker, data)
    if updated is None:
        return api_error(E.INTERNAL, "Map marker could not be updated")
    thread_ok = sync_marker_thread(updated, handle_marker_thread_updates)
    body = updated.to_dict()
    body["thread_synced"] = thread_ok
    return jsonify(body)


@map_bp.route("/markers/<int:mid>", methods=["DELETE"])
@require_moderator
def delete_marker(mid):
    marker = marker_service.get_marker_or_fail(mid)
    if marker.thread_id:
        sync_marker_thread(marker, mark_thread_as_deleted)
    if not marker_service.delete_marker(mid):
        return api_error(E.INTERNAL, "Map marker could not be deleted")
    return jsonify({"deleted": True, "id": mid})


# ═════════════════════════════════════════════════════════════════════════════
# SUGGESTIONS
# ═════════════════════════════════════════════════════════════════════════════

@map_bp.route("/suggestions", methods=["POST"])
def submit_suggestion():
    """Visitor submission; always enters the queue as pending."""
    data = request.get_json(silent=True) or {}
    data["status"] = "pending"
    data["user_id"] = current_user_id()
    suggestion = suggestion_service.create_suggestion(data)
    return jsonify(suggestion.to_dict()), 201


@map_bp.route("/suggestions", methods=["GET"])
@require_moderator
def list_pending_suggestions():
    page, per_page = _page_args()
    includes = _includes()
    items, total = suggestion_service.get_pending_suggestions(
        includes=includes, page=page, per_page=per_page,
    )
    return _paged(items, total, page, per_page, includes=includes)


@map_bp.route("/suggestions/<int:sid>", methods=["PUT"])
@require_moderator
def edit_suggestion(sid):
    suggestion = suggestion_service.get_suggestion_or_fail(sid)
    data = request.get_json(silent=True) or {}
    suggestion = suggestion_service.update_suggestion(suggestion, data)
    return jsonify(suggestion.to_dict())


@map_bp.route("/suggestions/<int:sid>/approve", methods=["POST"])
@require_moderator
def approve(sid):
    suggestion_service.get_suggestion_or_fail(sid)
    if not approve_suggestion(sid):
        return api_error(E.CONFLICT_STATE, "Suggestion could not be approved")
    return jsonify(suggestion_service.get_suggestion_or_fail(sid).to_dict())


@map_bp.route("/suggestions/<int:sid>/reject", methods=["POST"])
@require_moderator
def reject(sid):
    suggestion_service.get_suggestion_or_fail(sid)
    if not reject_suggestion(sid):
        return api_error(E.CONFLICT_STATE, "Suggestion could not be rejected")
    return jsonify(suggestion_service.get_suggestion_or_fail(sid).to_dict())


# ═════════════════════════════════════════════════════════════════════════════
# GEOCODING
# ═════════════════════════════════════════════════════════════════════════════

@map_bp.route("/geocode", methods=["POST"])
def geocode():
    """Body: { address }. 404 when the address matched nothing."""
    data = request.get_json(silent=True) or {}
    address = (data.get("address") or "").strip()
    if not address:
        return api_error(E.VALIDATION_REQUIRED, "address is required")
    coords = geocoding_gateway.geocode_address(address)
    if coords is None:
        return api_error(E.NOT_FOUND, "No location found for that address")
    return jsonify(coords)
