"""
Advisory group store.

An advisor's groups live as one JSON array in the settings row
``advisory_groups_<advisorId>``. The older layout kept a single flat list of
student ids under ``advisory_students_<advisorId>``; it is upgraded on first
read and still written on every save for code that reads the old key.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable, List
from uuid import uuid4

from sqlalchemy.orm import Session

from models import Setting

logger = logging.getLogger(__name__)

ADVISORY_REQUEST_PREFIX = "advisory_request_"
ADVISORY_STUDENTS_PREFIX = "advisory_students_"
ADVISORY_GROUPS_PREFIX = "advisory_groups_"
DEFAULT_ADVISORY_NAME = "My Advisory"


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass
class AdvisoryGroupRecord:
    id: str
    name: str
    student_ids: List[str] = field(default_factory=list)
    created_at: str = field(default_factory=_now_iso)
    updated_at: str = field(default_factory=_now_iso)

    @classmethod
    def new(cls, name: str, student_ids: Iterable[str] = ()) -> "AdvisoryGroupRecord":
        return cls(id=str(uuid4()), name=name.strip() or DEFAULT_ADVISORY_NAME, student_ids=list(student_ids))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "studentIds": list(self.student_ids),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
        }

    def touched(self, **changes: Any) -> "AdvisoryGroupRecord":
        return replace(self, updated_at=_now_iso(), **changes)


@dataclass
class AdvisoryRequestMetadata:
    student_id: str | None = None
    group_id: str | None = None


def advisory_students_key(advisor_id: str) -> str:
    return f"{ADVISORY_STUDENTS_PREFIX}{advisor_id}"


def advisory_groups_key(advisor_id: str) -> str:
    return f"{ADVISORY_GROUPS_PREFIX}{advisor_id}"


def build_advisory_request_key(advisor_id: str, email: str) -> str:
    return f"{ADVISORY_REQUEST_PREFIX}{advisor_id}_{email.lower().strip()}"


def parse_advisory_request_key(key: str) -> dict | None:
    """``advisory_request_<advisorId>_<email>`` -> {advisorId, studentEmail}.
    Advisor ids never contain ``_``; emails may.
    """
    if not key.startswith(ADVISORY_REQUEST_PREFIX):
        return None
    remainder = key[len(ADVISORY_REQUEST_PREFIX):]
    advisor_id, _, email = remainder.partition("_")
    if not advisor_id or not email:
        return None
    return {"advisorId": advisor_id, "studentEmail": email}


def parse_advisory_request_value(value: str | None) -> AdvisoryRequestMetadata:
    """Invite rows hold JSON ``{studentId, groupId}``; old rows hold the bare student id."""
    if not value:
        return AdvisoryRequestMetadata()
    try:
        parsed = json.loads(value)
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        sid = parsed.get("studentId")
        gid = parsed.get("groupId")
        return AdvisoryRequestMetadata(
            student_id=sid if isinstance(sid, str) else None,
            group_id=gid if isinstance(gid, str) else None,
        )
    return AdvisoryRequestMetadata(student_id=value)


def encode_advisory_request_value(student_id: str, group_id: str | None = None) -> str:
    return json.dumps({"studentId": student_id, "groupId": group_id})


def flatten_group_student_ids(groups: Iterable[AdvisoryGroupRecord]) -> List[str]:
    """Union of every group's students, first occurrence order."""
    seen: dict[str, None] = {}
    for group in groups:
        for sid in group.student_ids:
            seen.setdefault(sid, None)
    return list(seen)


def _coerce_group(raw: Any) -> AdvisoryGroupRecord | None:
    if not isinstance(raw, dict):
        return None
    now = _now_iso()
    name = raw.get("name")
    student_ids = raw.get("studentIds")
    return AdvisoryGroupRecord(
        id=raw["id"] if isinstance(raw.get("id"), str) else str(uuid4()),
        name=name.strip() if isinstance(name, str) and name.strip() else DEFAULT_ADVISORY_NAME,
        student_ids=[s for s in student_ids if isinstance(s, str)] if isinstance(student_ids, list) else [],
        created_at=raw["createdAt"] if isinstance(raw.get("createdAt"), str) else now,
        updated_at=raw["updatedAt"] if isinstance(raw.get("updatedAt"), str) else now,
    )


def parse_groups(value: str | None) -> List[AdvisoryGroupRecord]:
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except ValueError:
        logger.warning("advisory groups blob is not valid JSON; ignoring")
        return []
    if not isinstance(parsed, list):
        return []
    return [g for g in (_coerce_group(item) for item in parsed) if g is not None]


def parse_student_ids(value: str | None) -> List[str]:
    if not value:
        return []
    try:
        parsed = json.loads(value)
    except ValueError:
        return []
    if isinstance(parsed, list):
        return [s for s in parsed if isinstance(s, str)]
    return []


def _get_setting(session: Session, key: str) -> Setting | None:
    return session.query(Setting).filter(Setting.key == key).first()


def _upsert_setting(session: Session, key: str, value: str) -> Setting:
    row = _get_setting(session, key)
    if row is None:
        row = Setting(key=key, value=value)
        session.add(row)
    else:
        row.value = value
    session.flush()
    return row


def load_advisor_groups(session: Session, advisor_id: str) -> List[AdvisoryGroupRecord]:
    """
    Return the advisor's groups, upgrading the legacy flat list when the group
    blob is missing or empty. The upgrade is flushed through
    ``save_advisor_groups``; the caller commits.
    """
    row = _get_setting(session, advisory_groups_key(advisor_id))
    groups = parse_groups(row.value if row else None)
    if groups:
        return groups

    legacy = _get_setting(session, advisory_students_key(advisor_id))
    fallback = AdvisoryGroupRecord.new(DEFAULT_ADVISORY_NAME, parse_student_ids(legacy.value if legacy else None))
    logger.info("advisor %s: migrated legacy advisory list (%d students)", advisor_id, len(fallback.student_ids))
    save_advisor_groups(session, advisor_id, [fallback])
    return [fallback]


def save_advisor_groups(session: Session, advisor_id: str, groups: List[AdvisoryGroupRecord]) -> None:
    _upsert_setting(session, advisory_groups_key(advisor_id), json.dumps([g.to_dict() for g in groups]))
    _sync_legacy_students(session, advisor_id, groups)


def _sync_legacy_students(session: Session, advisor_id: str, groups: List[AdvisoryGroupRecord]) -> None:
    all_ids = flatten_group_student_ids(groups)
    key = advisory_students_key(advisor_id)
    if not all_ids:
        # absent key, never "[]"
        row = _get_setting(session, key)
        if row is not None:
            session.delete(row)
            session.flush()
        return
    _upsert_setting(session, key, json.dumps(all_ids))


def find_group(groups: Iterable[AdvisoryGroupRecord], group_id: str) -> AdvisoryGroupRecord | None:
    return next((g for g in groups if g.id == group_id), None)


def add_student_to_group(
    groups: List[AdvisoryGroupRecord], student_id: str, group_id: str | None = None
) -> List[AdvisoryGroupRecord]:
    """Add to ``group_id`` (or the first group). Unknown groups fall back to the first."""
    if not groups:
        raise ValueError("advisor has no advisory group")
    target = find_group(groups, group_id) if group_id else None
    target_id = (target or groups[0]).id
    return [
        g.touched(student_ids=[*g.student_ids, student_id])
        if g.id == target_id and student_id not in g.student_ids
        else g
        for g in groups
    ]
