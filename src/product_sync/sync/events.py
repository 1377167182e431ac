"""Event normalizer -- turns arbitrary webhook bodies into canonical feature events.

Notification payloads are not contractually fixed: events arrive as a list
under ``data``, as ``data.events``, as a single ``data`` record, or as the bare
body, and the feature reference can sit under several keys and depths.

normalize_events() is pure and total: it never raises, and a body with no
recognizable feature reference yields an empty list.

Per sub-event, when the event kind starts with ``feature.`` the following are
tried in order:
  1. direct ``id``
  2. a URL reference ending in ``/features/{id}``
  3. ``entity`` object with ``type == "feature"``
  4. top-level ``entityId``
  5. the entity/entityId/id checks under ``data`` and under ``entity.entity``
Finally, for every sub-event regardless of kind, a depth-first walk returns the
first node typed ``feature`` that carries an id. The walk visits dict values in
insertion order and list elements in order; when several nodes qualify, the
first one reached in that order wins.
"""

from __future__ import annotations

import json
import re
from typing import Any

from src.product_sync.sync.schemas import CanonicalEvent

FEATURE_KIND_PREFIX = "feature."
FEATURE_TYPE = "feature"

_FEATURE_URL_RE = re.compile(r"/features/([0-9A-Fa-f-]{20,})$")
_URL_KEYS = ("href", "url", "link", "self", "target")


# ── Helpers ─────────────────────────────────────────────────────────────────


def _non_empty_str(value: Any) -> str | None:
    if isinstance(value, str) and value:
        return value
    return None


def _event_kind(event: Any) -> str:
    """Return the event kind from ``eventType`` or ``type`` (empty if absent)."""
    if not isinstance(event, dict):
        return ""
    for key in ("eventType", "type"):
        kind = event.get(key)
        if isinstance(kind, str) and kind:
            return kind
    return ""


def _split_batch(body: Any) -> list[Any]:
    """Extract the raw sub-events from a notification body."""
    if isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, list):
            return list(data)
        if isinstance(data, dict):
            events = data.get("events")
            if isinstance(events, list):
                return list(events)
            return [data]
    return [body]


def _id_from_url(value: Any) -> str | None:
    text = _non_empty_str(value)
    if text is None:
        return None
    match = _FEATURE_URL_RE.search(text)
    return match.group(1) if match else None


def _url_reference_id(container: Any) -> str | None:
    """Look for a ``.../features/{id}`` URL on ``container``."""
    if not isinstance(container, dict):
        return None
    for key in _URL_KEYS:
        found = _id_from_url(container.get(key))
        if found:
            return found
    links = container.get("links")
    if isinstance(links, dict):
        for value in links.values():
            found = _id_from_url(value)
            if found:
                return found
    return None


def _scoped_id(container: Any) -> str | None:
    """Apply the entity / entityId / id checks to a nested container.

    Only called once the sub-event passed the ``feature.`` kind gate.
    """
    if not isinstance(container, dict):
        return None
    entity = container.get("entity")
    if isinstance(entity, dict) and entity.get("type") == FEATURE_TYPE:
        found = _non_empty_str(entity.get("id"))
        if found:
            return found
    return _non_empty_str(container.get("entityId")) or _non_empty_str(container.get("id"))


def _gated_id(event: dict[str, Any]) -> tuple[str | None, str]:
    """Run extraction steps 1-5 for a sub-event whose kind passed the gate."""
    found = _non_empty_str(event.get("id"))
    if found:
        return found, "id"

    found = _url_reference_id(event) or _url_reference_id(event.get("data"))
    if found:
        return found, "url"

    entity = event.get("entity")
    if isinstance(entity, dict) and entity.get("type") == FEATURE_TYPE:
        found = _non_empty_str(entity.get("id"))
        if found:
            return found, "entity"

    found = _non_empty_str(event.get("entityId"))
    if found:
        return found, "entityId"

    found = _scoped_id(event.get("data"))
    if found:
        return found, "data"

    if isinstance(entity, dict):
        found = _scoped_id(entity.get("entity"))
        if found:
            return found, "entity.entity"

    return None, ""


def find_feature_node_id(value: Any) -> str | None:
    """Depth-first search for the first node typed ``feature`` that carries an id.

    Traversal is pre-order over an explicit stack: a dict is checked before its
    children, dict values are visited in insertion order, list elements in
    index order.
    """
    stack: list[Any] = [value]
    while stack:
        node = stack.pop()
        if isinstance(node, dict):
            if node.get("type") == FEATURE_TYPE or node.get("entityType") == FEATURE_TYPE:
                found = _non_empty_str(node.get("id")) or _non_empty_str(node.get("entityId"))
                if found:
                    return found
            children = [child for child in node.values() if isinstance(child, (dict, list))]
            stack.extend(reversed(children))
        elif isinstance(node, list):
            children = [child for child in node if isinstance(child, (dict, list))]
            stack.extend(reversed(children))
    return None


# ── Public API ──────────────────────────────────────────────────────────────


def extract_event(raw: Any) -> CanonicalEvent | None:
    """Extract a canonical event from a single raw sub-event, or None."""
    kind = _event_kind(raw)

    if isinstance(raw, dict) and kind.startswith(FEATURE_KIND_PREFIX):
        entity_id, source = _gated_id(raw)
        if entity_id:
            return CanonicalEvent(entity_id=entity_id, kind=kind, source=source, raw=raw)

    # Older payloads lack a top-level kind; the deep walk is exempt from the gate
    entity_id = find_feature_node_id(raw)
    if entity_id:
        return CanonicalEvent(entity_id=entity_id, kind=kind, source="deep", raw=raw)
    return None


def normalize_events(body: Any) -> list[CanonicalEvent]:
    """Normalize a notification body into canonical events, preserving order."""
    events: list[CanonicalEvent] = []
    for raw in _split_batch(body):
        event = extract_event(raw)
        if event is not None:
            events.append(event)
    return events


def entity_ids(events: list[CanonicalEvent]) -> list[str]:
    """Return the distinct entity ids of ``events`` in first-seen order."""
    seen: set[str] = set()
    ids: list[str] = []
    for event in events:
        if event.entity_id not in seen:
            seen.add(event.entity_id)
            ids.append(event.entity_id)
    return ids


def describe_payload(body: Any, include_preview: bool = False, max_chars: int = 2000) -> dict[str, Any]:
    """Summarize a notification body for diagnostic logging.

    The raw preview is only included when ``include_preview`` is set, and is
    capped at ``max_chars`` characters.
    """
    data = body.get("data") if isinstance(body, dict) else None
    summary: dict[str, Any] = {
        "body_type": type(body).__name__,
        "top_level_keys": sorted(str(k) for k in body.keys()) if isinstance(body, dict) else [],
        "detected_kind": _event_kind(body) or _event_kind(data),
        "data_type": type(data).__name__ if data is not None else None,
    }
    if isinstance(data, list):
        summary["data_length"] = len(data)
    elif isinstance(data, dict):
        summary["data_keys"] = sorted(str(k) for k in data.keys())

    if include_preview:
        try:
            preview = json.dumps(body, default=str)
        except (TypeError, ValueError):
            preview = repr(body)
        summary["preview"] = preview[:max_chars]
        summary["preview_truncated"] = len(preview) > max_chars
    return summary
