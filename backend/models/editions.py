"""
Module: backend/models/editions.py
"""
from __future__ import annotations
from datetime import datetime
from typing import List
from sqlalchemy.orm import Mapped, mapped_column, relationship
from sqlalchemy import Integer, String, Text, DateTime, ForeignKey, UniqueConstraint, Index
from utils.db import Base
from .base import new_id, utcnow, as_utc


class Opportunity(Base):
    __tablename__ = "opportunities"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    slug: Mapped[str] = mapped_column(String(128), unique=True, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    editions: Mapped[List["Edition"]] = relationship("Edition", back_populates="opportunity", cascade="all, delete-orphan")


class Edition(Base):
    """One run of an opportunity; carries the engagement counters."""
    __tablename__ = "editions"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    opportunity_id: Mapped[str] = mapped_column(ForeignKey("opportunities.id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    registration_deadline: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    saves_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    follows_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    clicks_30d: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    # written only by services.popularity
    popularity_score: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)

    opportunity: Mapped["Opportunity"] = relationship("Opportunity", back_populates="editions")

    def to_dict(self) -> dict:
        deadline = as_utc(self.registration_deadline)
        return {
            "id": self.id,
            "opportunityId": self.opportunity_id,
            "title": self.opportunity.title if self.opportunity else None,
            "slug": self.opportunity.slug if self.opportunity else None,
            "name": self.name,
            "registrationDeadline": deadline.isoformat() if deadline else None,
            "savesCount": self.saves_count,
            "followsCount": self.follows_count,
            "clicks30d": self.clicks_30d,
            "popularityScore": self.popularity_score,
            "createdAt": as_utc(self.created_at).isoformat(),
        }


class SavedEdition(Base):
    __tablename__ = "saved_editions"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    edition_id: Mapped[str] = mapped_column(ForeignKey("editions.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'edition_id', name='uq_saved_editions_user_edition'),
    )


class Follow(Base):
    __tablename__ = "follows"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    edition_id: Mapped[str] = mapped_column(ForeignKey("editions.id", ondelete="CASCADE"), nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)

    __table_args__ = (
        UniqueConstraint('user_id', 'edition_id', name='uq_follows_user_edition'),
    )


class Notification(Base):
    __tablename__ = "notifications"
    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    edition_id: Mapped[str | None] = mapped_column(ForeignKey("editions.id", ondelete="CASCADE"), nullable=True)
    kind: Mapped[str] = mapped_column(String(32), nullable=False)
    scheduled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    delivered_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)


Index("idx_editions_popularity_desc", Edition.popularity_score.desc())
