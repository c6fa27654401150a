"""
Read-time engagement aggregation for advisors, counselors and admins.
Nothing computed here is stored; every request recounts school-scale rows.
"""
from __future__ import annotations

from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from models import (
    Activity, ActivityStatus, AlumniApplication, Organization, User, UserRole,
    VolunteeringGoal, VolunteeringParticipation, as_utc,
)
from utils.rounding import round_half_up

MONTH_NAMES = ["Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]
TREND_MONTHS = 6
RECENT_WINDOW = timedelta(days=30)


def _pct(part: float, whole: float) -> int:
    return round_half_up(part / whole * 100) if whole else 0


def _month_start(year: int, month: int) -> datetime:
    return datetime(year, month, 1, tzinfo=timezone.utc)


def _shift_month(year: int, month: int, delta: int) -> tuple[int, int]:
    idx = year * 12 + (month - 1) + delta
    return idx // 12, idx % 12 + 1


def empty_advisory_stats() -> Dict[str, Any]:
    return {
        "studentCount": 0,
        "totalActivities": 0,
        "verifiedActivities": 0,
        "pendingActivities": 0,
        "recentActivities": 0,
        "serviceHours30d": 0,
        "studentsWithRecent": 0,
        "activityTrend": [],
        "hoursTrend": [],
    }


def advisory_stats(session: Session, student_ids: Sequence[str], now: datetime | None = None) -> Dict[str, Any]:
    """Activity statistics for one advisor's students."""
    if not student_ids:
        return empty_advisory_stats()
    now = now or datetime.now(timezone.utc)
    since = now - RECENT_WINDOW

    activities = session.execute(
        select(Activity.student_id, Activity.status, Activity.total_hours, Activity.created_at)
        .where(Activity.student_id.in_(list(student_ids)))
    ).all()

    verified = pending = recent = 0
    hours_30d = 0.0
    students_recent: set[str] = set()
    for a in activities:
        status = (a.status or "").lower()
        if status == ActivityStatus.verified:
            verified += 1
        elif status == ActivityStatus.pending:
            pending += 1
        created = as_utc(a.created_at)
        if created and created >= since:
            recent += 1
            students_recent.add(a.student_id)
            hours_30d += float(a.total_hours or 0)

    activity_trend: List[Dict[str, Any]] = []
    hours_trend: List[Dict[str, Any]] = []
    for back in range(TREND_MONTHS - 1, -1, -1):
        y, m = _shift_month(now.year, now.month, -back)
        start = _month_start(y, m)
        ny, nm = _shift_month(y, m, 1)
        end = _month_start(ny, nm)
        in_month = [a for a in activities if a.created_at and start <= as_utc(a.created_at) < end]
        activity_trend.append({"month": MONTH_NAMES[m - 1], "value": len(in_month)})
        hours_trend.append({
            "month": MONTH_NAMES[m - 1],
            "value": round_half_up(sum(float(a.total_hours or 0) for a in in_month)),
        })

    return {
        "studentCount": len(student_ids),
        "totalActivities": len(activities),
        "verifiedActivities": verified,
        "pendingActivities": pending,
        "recentActivities": recent,
        "serviceHours30d": round_half_up(hours_30d),
        "studentsWithRecent": len(students_recent),
        "activityTrend": activity_trend,
        "hoursTrend": hours_trend,
    }


def counselor_insights(session: Session, school_id: str, now: datetime | None = None) -> Dict[str, Any]:
    """
    School-wide engagement summary. ``engagementScore`` is the plain mean of
    five 0-100 component scores (participation, verified hours, goals,
    organization approvals, alumni uploads).
    """
    now = now or datetime.now(timezone.utc)
    last_30 = now - RECENT_WINDOW
    last_60 = now - 2 * RECENT_WINDOW

    student_q = select(User.id).where(User.role == UserRole.student.value, User.school_id == school_id)
    total_students = session.scalar(select(func.count()).select_from(student_q.subquery())) or 0

    activities = session.execute(
        select(Activity.student_id, Activity.status)
        .join(User, User.id == Activity.student_id)
        .where(User.school_id == school_id)
    ).all()
    goals = session.execute(
        select(VolunteeringGoal.status)
        .join(User, User.id == VolunteeringGoal.student_id)
        .where(User.school_id == school_id)
    ).scalars().all()
    volunteering = session.execute(
        select(VolunteeringParticipation.total_hours, VolunteeringParticipation.verified,
               VolunteeringParticipation.updated_at)
        .join(User, User.id == VolunteeringParticipation.student_id)
        .where(User.school_id == school_id, VolunteeringParticipation.updated_at >= last_60)
    ).all()
    org_statuses = session.execute(
        select(Organization.status)
        .join(User, User.id == Organization.created_by_id)
        .where(User.school_id == school_id)
    ).scalars().all()
    alumni = session.execute(
        select(AlumniApplication.parse_status, AlumniApplication.created_at)
        .join(User, User.id == AlumniApplication.user_id)
        .where(User.school_id == school_id)
    ).all()

    participants = {a.student_id for a in activities}
    verified_activities = sum(1 for a in activities if a.status == ActivityStatus.verified)
    participation_rate = _pct(len(participants), total_students)

    hours_last_30 = hours_prev_30 = verified_hours_last_30 = 0.0
    for p in volunteering:
        hours = float(p.total_hours or 0)
        if as_utc(p.updated_at) >= last_30:
            hours_last_30 += hours
            if p.verified:
                verified_hours_last_30 += hours
        else:
            hours_prev_30 += hours
    momentum = round_half_up((hours_last_30 - hours_prev_30) / hours_prev_30 * 100) if hours_prev_30 else None

    completed_goals = sum(1 for s in goals if s == "completed")
    goal_rate = _pct(completed_goals, len(goals))

    approved_orgs = sum(1 for s in org_statuses if s == "APPROVED")
    org_rate = _pct(approved_orgs, len(org_statuses))

    alumni_successes = sum(1 for a in alumni if a.parse_status == "success")
    recent_uploads = sum(1 for a in alumni if as_utc(a.created_at) >= last_30)

    per_student = max(total_students, 1)
    hours_score = min(round_half_up(verified_hours_last_30 / per_student * 5), 100)
    alumni_score = min(round_half_up(recent_uploads / per_student * 100), 100)
    components = [participation_rate, hours_score, goal_rate, org_rate, alumni_score]
    engagement_score = round_half_up(sum(components) / len(components))

    summary = {
        "totalStudents": total_students,
        "activityParticipationRate": participation_rate,
        "verifiedActivities": verified_activities,
        "hoursLast30": hours_last_30,
        "verifiedHoursLast30": verified_hours_last_30,
        "volunteeringMomentum": momentum,
        "goalCompletionRate": goal_rate,
        "organizationApprovalRate": org_rate,
        "alumniSuccesses": alumni_successes,
        "recentAlumniUploads": recent_uploads,
        "engagementScore": engagement_score,
    }
    widgets = [
        {
            "id": "participation",
            "label": "Activity Participation",
            "value": f"{participation_rate}%",
            "score": participation_rate,
            "detail": {"participants": len(participants), "totalStudents": total_students},
        },
        {
            "id": "volunteering",
            "label": "Verified Volunteering Hours",
            "value": f"{round_half_up(verified_hours_last_30)} hrs (30d)",
            "score": hours_score,
            "detail": {"hoursLast30": hours_last_30, "hoursPrev30": hours_prev_30, "trend": momentum},
        },
        {
            "id": "goals",
            "label": "Goal Completion",
            "value": f"{goal_rate}%",
            "score": goal_rate,
            "detail": {"completedGoals": completed_goals, "totalGoals": len(goals)},
        },
        {
            "id": "organizations",
            "label": "Club & Program Launches",
            "value": f"{approved_orgs}/{len(org_statuses)} approved",
            "score": org_rate,
        },
        {
            "id": "alumni",
            "label": "Alumni Portfolio Growth",
            "value": f"{recent_uploads} uploads (30d)",
            "score": alumni_score,
            "detail": {"alumniSuccesses": alumni_successes, "totalSubmissions": len(alumni)},
        },
    ]
    return {"summary": summary, "widgets": widgets}


def admin_analytics(session: Session) -> Dict[str, Any]:
    categories = Counter(
        (c or "Other") for c in session.execute(select(Activity.category)).scalars()
    )
    statuses = Counter(session.execute(select(Activity.status)).scalars())
    total = sum(statuses.values())
    verified = statuses.get(ActivityStatus.verified, 0)
    denied = statuses.get(ActivityStatus.denied, 0)

    def _count_role(role: UserRole) -> int:
        return session.scalar(select(func.count()).select_from(User).where(User.role == role.value)) or 0

    return {
        "mostCommonCategories": [
            {"category": c, "count": n}
            for c, n in sorted(categories.items(), key=lambda kv: (-kv[1], kv[0]))[:10]
        ],
        "verificationByStatus": [
            {"status": "Verified", "count": verified},
            {"status": "Unverified", "count": total - verified - denied},
            {"status": "Denied", "count": denied},
        ],
        "totalActivities": total,
        "totalStudents": _count_role(UserRole.student),
        "totalVerifiers": _count_role(UserRole.verifier),
    }
