from __future__ import annotations
from datetime import datetime
from typing import Any, Dict, List, Optional

from markpedia.models.audit import AuditTrailEntry
from markpedia.utils.listing import iso_z


def audit_action_label(new_status: str, role: str) -> str:
    return f"{new_status} by {role}"


def build_audit_entry(from_status: str, to_status: str, actor, notes: Optional[str], timestamp: datetime) -> AuditTrailEntry:
    """Build (but do not attach) the audit entry for one status change.

    actor: any object exposing id, role and optionally name (Actor or User).
    Notes are stored verbatim; only None is normalised to an empty string.
    """
    return AuditTrailEntry(
        action=audit_action_label(to_status, actor.role),
        from_status=from_status,
        to_status=to_status,
        performed_by=actor.id,
        performed_by_name=getattr(actor, 'name', None),
        actor_role=actor.role,
        notes=notes if notes is not None else '',
        timestamp=timestamp,
    )


def audit_trail_json(request) -> List[Dict[str, Any]]:
    """Entries oldest first."""
    return [
        {
            'action': e.action,
            'performed_by': e.performed_by,
            'performed_by_name': e.performed_by_name,
            'role': e.actor_role,
            'from_status': e.from_status,
            'to_status': e.to_status,
            'timestamp': iso_z(e.timestamp),
            'notes': e.notes,
        }
        for e in request.audit_trail
    ]
