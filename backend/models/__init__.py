"""
Module: backend/models/__init__.py
"""
from .base import *
from .school import School
from .setting import Setting
from .editions import Opportunity, Edition, SavedEdition, Follow, Notification
from .activities import Activity, ActivityStatus, VolunteeringParticipation, VolunteeringGoal
from .organizations import Organization, AlumniApplication
from .embedding import Embedding
from .dead_letter import DeadLetter

__all__ = [
    "User", "UserRole", "School", "Setting",
    "Opportunity", "Edition", "SavedEdition", "Follow", "Notification",
    "Activity", "ActivityStatus", "VolunteeringParticipation", "VolunteeringGoal",
    "Organization", "AlumniApplication",
    "Embedding", "DeadLetter",
    "new_id", "utcnow", "as_utc",
]
