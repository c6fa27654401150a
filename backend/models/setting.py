"""
Module: backend/models/setting.py

Generic key/value rows. Keys follow ``<namespace>_<ownerId>[_<subkey>]``
(``advisory_groups_<advisorId>``, ``admin_subrole_<userId>`` ...); values are
plain strings or JSON text. No foreign keys: owners are encoded in the key.
"""
from datetime import datetime
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy import String, DateTime, Text
from utils.db import Base
from .base import new_id, utcnow


class Setting(Base):
    __tablename__ = "settings"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    key: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)
