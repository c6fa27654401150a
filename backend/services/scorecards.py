"""
Advisory score card: a 0-100 composite over the advisory statistics with a
per-signal breakdown for the dashboard.
"""
from __future__ import annotations

import math
from typing import Any, Dict, Optional

from utils.rounding import round_half_up


def clamp_score(value: float, lo: float = 0.0, hi: float = 1.0) -> float:
    if not math.isfinite(value):
        return lo
    return max(lo, min(hi, value))


def tone_from_score(value: float) -> str:
    if value >= 0.7:
        return "good"
    if value >= 0.4:
        return "warn"
    return "bad"


def build_advisory_score_card(stats: Optional[Dict[str, Any]], pending_requests: int) -> Dict[str, Any]:
    if not stats or not stats.get("studentCount"):
        return {
            "title": "Advisory engagement",
            "score": 15,
            "description": "No advisees yet",
            "breakdown": [
                {"label": "Updates", "value": "0 activities", "tone": "warn"},
                {"label": "Recent activity", "value": "0 students", "tone": "warn",
                 "helper": "Add students to track progress"},
                {"label": "Hours", "value": "0h logged", "tone": "warn"},
                {"label": "Backlog", "value": f"{pending_requests} invites",
                 "tone": "warn" if pending_requests > 0 else "good"},
            ],
            "hint": "Add students to your advisory to unlock this score.",
        }

    students = max(stats["studentCount"], 1)
    total = stats["totalActivities"]
    activity_score = clamp_score(total / students / 3)
    verified_rate = stats["verifiedActivities"] / total if total > 0 else 0.0
    recency_score = clamp_score(stats["studentsWithRecent"] / students)
    backlog_score = clamp_score(1 - stats["pendingActivities"] / total) if total > 0 else 0.7
    avg_hours = stats["serviceHours30d"] / students
    hours_score = clamp_score(avg_hours / 5)

    composite = (
        activity_score * 0.28
        + verified_rate * 0.22
        + recency_score * 0.25
        + backlog_score * 0.15
        + hours_score * 0.10
    )

    return {
        "title": "Advisory engagement",
        "score": round_half_up(clamp_score(composite) * 100),
        "description": f"{stats['studentCount']} students",
        "breakdown": [
            {
                "label": "Updates logged",
                "value": str(total),
                "helper": f"{stats['verifiedActivities']} verified",
                "tone": tone_from_score(activity_score),
            },
            {
                "label": "Active students",
                "value": f"{stats['studentsWithRecent']}/{stats['studentCount']}",
                "helper": f"{stats['recentActivities']} updates (30d)",
                "tone": tone_from_score(recency_score),
            },
            {
                "label": "Hours logged",
                "value": f"{round_half_up(stats['serviceHours30d'])}h",
                "helper": f"{avg_hours:.1f}h avg",
                "tone": tone_from_score(hours_score),
            },
            {
                "label": "Backlog",
                "value": f"{stats['pendingActivities'] + pending_requests} waiting",
                "helper": f"{stats['pendingActivities']} activities · {pending_requests} invites",
                "tone": tone_from_score(backlog_score),
            },
        ],
        "hint": "Log student activity to boost this score." if total == 0 else None,
    }
