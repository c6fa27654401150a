"""
Module: backend/models/school.py
"""
from __future__ import annotations
from datetime import datetime
from typing import TYPE_CHECKING, List
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import String, DateTime
from utils.db import Base
from .base import new_id, utcnow

if TYPE_CHECKING:
    from .base import User


class School(Base):
    __tablename__ = "schools"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    slug: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    users: Mapped[List["User"]] = relationship("User", back_populates="school")
