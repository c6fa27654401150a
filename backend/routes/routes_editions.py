"""
Edition detail plus the save / follow toggles.
Each toggle writes the membership row and the edition counter in one
transaction; a concurrent duplicate toggle loses on the unique constraint
and is answered 409, as is an un-toggle whose row is already gone.
"""
import json
import logging
from datetime import datetime, timedelta, timezone

from flask import Blueprint, g, jsonify
from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError

from models import Edition, Follow, Notification, SavedEdition, as_utc
from utils.auth import get_current_user
from utils.authz import require_login
from utils.db import get_session
from utils.response_helpers import conflict_response, not_found_response

bp = Blueprint("editions", __name__, url_prefix="/api/editions")
logger = logging.getLogger(__name__)

REMINDER_DAYS = (21, 7, 1)
DEADLINE_SOON = "deadline_soon"


@bp.get("/<edition_id>")
def get_edition(edition_id: str):
    with get_session() as s:
        edition = s.get(Edition, edition_id)
        if edition is None:
            return not_found_response("Edition")
        body = edition.to_dict()
        user = get_current_user(s, optional=True)
        if user is not None:
            body["saved"] = _is_member(s, SavedEdition, user.id, edition_id)
            body["followed"] = _is_member(s, Follow, user.id, edition_id)
        return jsonify({"edition": body})


def _counter(s, edition_id: str, column) -> int:
    return s.scalar(select(column).where(Edition.id == edition_id)) or 0


def _is_member(s, model, user_id: str, edition_id: str) -> bool:
    return s.query(model).filter_by(user_id=user_id, edition_id=edition_id).first() is not None


def _remove_member(s, model, user_id: str, edition_id: str) -> bool:
    result = s.execute(delete(model).where(model.user_id == user_id, model.edition_id == edition_id))
    return result.rowcount > 0


@bp.post("/<edition_id>/save")
@require_login
def toggle_save(edition_id: str):
    uid = g.current_user.id
    with get_session() as s:
        if s.get(Edition, edition_id) is None:
            return not_found_response("Edition")

        if _is_member(s, SavedEdition, uid, edition_id):
            if not _remove_member(s, SavedEdition, uid, edition_id):
                s.rollback()
                logger.info("unsave raced user=%s edition=%s", uid, edition_id)
                return conflict_response()
            s.execute(
                update(Edition)
                .where(Edition.id == edition_id, Edition.saves_count > 0)
                .values(saves_count=Edition.saves_count - 1)
            )
            saved = False
        else:
            s.add(SavedEdition(user_id=uid, edition_id=edition_id))
            s.execute(update(Edition).where(Edition.id == edition_id).values(saves_count=Edition.saves_count + 1))
            saved = True
        try:
            s.commit()
        except IntegrityError:
            s.rollback()
            logger.info("save toggle raced user=%s edition=%s", uid, edition_id)
            return conflict_response()
        return jsonify({"saved": saved, "savesCount": _counter(s, edition_id, Edition.saves_count)})


def _deadline_reminders(user_id: str, edition: Edition, now: datetime) -> list[Notification]:
    deadline = as_utc(edition.registration_deadline)
    if deadline is None:
        return []
    out = []
    for days in REMINDER_DAYS:
        at = deadline - timedelta(days=days)
        if at > now:
            out.append(Notification(
                user_id=user_id,
                edition_id=edition.id,
                kind=DEADLINE_SOON,
                scheduled_at=at,
                payload=json.dumps({"daysUntil": days}),
            ))
    return out


@bp.post("/<edition_id>/follow")
@require_login
def toggle_follow(edition_id: str):
    uid = g.current_user.id
    with get_session() as s:
        edition = s.get(Edition, edition_id)
        if edition is None:
            return not_found_response("Edition")

        created = 0
        if _is_member(s, Follow, uid, edition_id):
            if not _remove_member(s, Follow, uid, edition_id):
                s.rollback()
                logger.info("unfollow raced user=%s edition=%s", uid, edition_id)
                return conflict_response()
            s.query(Notification).filter(
                Notification.user_id == uid,
                Notification.edition_id == edition_id,
                Notification.delivered_at.is_(None),
            ).delete(synchronize_session=False)
            s.execute(
                update(Edition)
                .where(Edition.id == edition_id, Edition.follows_count > 0)
                .values(follows_count=Edition.follows_count - 1)
            )
            followed = False
        else:
            s.add(Follow(user_id=uid, edition_id=edition_id))
            reminders = _deadline_reminders(uid, edition, datetime.now(timezone.utc))
            s.add_all(reminders)
            created = len(reminders)
            s.execute(update(Edition).where(Edition.id == edition_id).values(follows_count=Edition.follows_count + 1))
            followed = True
        try:
            s.commit()
        except IntegrityError:
            s.rollback()
            logger.info("follow toggle raced user=%s edition=%s", uid, edition_id)
            return conflict_response()
        return jsonify({
            "followed": followed,
            "followsCount": _counter(s, edition_id, Edition.follows_count),
            "notificationsCreated": created,
        })
