"""Database models for the IPA coach scoring service."""

import enum
from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import (
    JSON,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from ipa_coach.db.session import Base


class Dialect(str, enum.Enum):
    """English dialects a word can be practised in."""

    GA = "GA"
    RP = "RP"
    AU = "AU"
    CA = "CA"
    NZ = "NZ"
    SA = "SA"
    IN = "IN"
    IE = "IE"
    SC = "SC"
    WA = "WA"


class Word(Base):
    """A vocabulary entry."""

    __tablename__ = "words"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    text: Mapped[str] = mapped_column(String(200), index=True)
    language: Mapped[str] = mapped_column(String(10), default="en")
    pos: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)  # part of speech
    difficulty: Mapped[int] = mapped_column(Integer, default=1)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    variants: Mapped[list["DialectVariant"]] = relationship(
        "DialectVariant", back_populates="word", cascade="all, delete-orphan"
    )


class DialectVariant(Base):
    """Pronunciation of a word in one dialect."""

    __tablename__ = "dialect_variants"
    __table_args__ = (UniqueConstraint("word_id", "dialect"),)

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    word_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("words.id", ondelete="CASCADE"), index=True
    )
    dialect: Mapped[Dialect] = mapped_column(Enum(Dialect))
    ipa: Mapped[str] = mapped_column(String(200))
    audio_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    video_url: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )

    word: Mapped["Word"] = relationship("Word", back_populates="variants")


class Score(Base):
    """Pronunciation score for a recording (one row per recording)."""

    __tablename__ = "scores"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid4())
    )
    recording_id: Mapped[str] = mapped_column(String(36), unique=True, index=True)
    overall_pct: Mapped[float] = mapped_column(Float)
    per_phoneme: Mapped[dict] = mapped_column(JSON, default=dict)
    confidence: Mapped[float] = mapped_column(Float)
    alignment_cost: Mapped[Optional[float]] = mapped_column(Float, nullable=True)  # NULL when infinite
    latency_ms: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now()
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
