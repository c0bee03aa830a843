# Overview: Append-only activity log for audited domain actions.

"""
Activity Log Invariants

- Append-only: no updates or deletes of existing rows.
- Written inside the same DB transaction as the change it describes, so a
  rolled back change never leaves a dangling audit row (and vice versa).
- No business logic here; callers decide what old/new data to record.
"""

from __future__ import annotations

import json
from typing import Any

from ..models import ActivityLog

ACTION_CREATE = "CREATE"
ACTION_EDIT = "EDIT"
ACTION_STATUS_CHANGE = "STATUS_CHANGE"
ACTION_PAYMENT = "PAYMENT"
ACTION_RESET = "RESET"
ACTION_UNRECONCILED_PAYMENT = "UNRECONCILED_PAYMENT"

SOURCE_WEB = "WEB"
SOURCE_SYSTEM = "SYSTEM"
SOURCE_CRON = "CRON"
SOURCE_WEBHOOK = "WEBHOOK"

# Bookkeeping columns that never count as a meaningful edit
_IGNORED_FIELDS = {"updated_at", "created_at", "version_id"}


def _dumps(value: Any) -> str | None:
    if value is None:
        return None
    return json.dumps(value, default=str, sort_keys=True)


def diff_fields(old_data: dict, new_data: dict) -> dict:
    """Return {field: {"old": x, "new": y}} for every field whose value changed."""
    changes = {}
    for key in sorted(set(old_data) | set(new_data)):
        if key in _IGNORED_FIELDS:
            continue
        old_val = old_data.get(key)
        new_val = new_data.get(key)
        if _dumps(old_val) != _dumps(new_val):
            changes[key] = {"old": old_val, "new": new_val}
    return changes


def log_activity(
    session,
    *,
    entity_type: str,
    entity_id,
    action_type: str,
    entity_identifier: str | None = None,
    old_data: dict | None = None,
    new_data: dict | None = None,
    actor=None,
    source: str = SOURCE_WEB,
    system_name: str | None = None,
) -> ActivityLog:
    """
    Record one audit event.

    actor is the acting User; when absent the event is attributed to the
    system (system_name, e.g. "Razorpay Webhook", is used as display name).
    """
    if actor is not None:
        user_id = str(actor.id)
        user_name = actor.name
    elif source in (SOURCE_SYSTEM, SOURCE_CRON, SOURCE_WEBHOOK):
        user_id = "SYSTEM"
        user_name = system_name or "System"
    else:
        user_id = "UNKNOWN"
        user_name = "Unknown"

    field_changes = None
    if action_type in (ACTION_EDIT, ACTION_STATUS_CHANGE) and old_data is not None and new_data is not None:
        field_changes = diff_fields(old_data, new_data) or None

    entry = ActivityLog(
        entity_type=entity_type,
        entity_id=str(entity_id),
        entity_identifier=entity_identifier,
        action_type=action_type,
        old_data=_dumps(old_data),
        new_data=_dumps(new_data),
        field_changes=_dumps(field_changes),
        user_id=user_id,
        user_name=user_name,
        source=source,
    )
    session.add(entry)
    session.flush()
    return entry


def get_entity_activity(session, entity_type: str, entity_id) -> list[ActivityLog]:
    return (
        session.query(ActivityLog)
        .filter_by(entity_type=entity_type, entity_id=str(entity_id))
        .order_by(ActivityLog.id)
        .all()
    )
