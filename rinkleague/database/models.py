"""
SQLAlchemy ORM models for the league event and roster system.
"""

import enum
from sqlalchemy import (
    Column,
    Integer,
    String,
    Text,
    Boolean,
    Float,
    DateTime,
    ForeignKey,
    UniqueConstraint,
    CheckConstraint,
    Index,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from rinkleague.database.db import Base


class RegistrationStatus(str, enum.Enum):
    """Registration status enum."""

    REQUESTED = "requested"
    GOING = "going"
    WAITLIST = "waitlist"
    REMOVED = "removed"


# Statuses that hold a place on the event (roster, queue, or pending approval)
ACTIVE_STATUSES = (
    RegistrationStatus.GOING,
    RegistrationStatus.WAITLIST,
    RegistrationStatus.REQUESTED,
)

# Legal status edges. A missing registration row behaves like REMOVED.
REGISTRATION_TRANSITIONS = {
    RegistrationStatus.REMOVED: frozenset(
        {RegistrationStatus.REQUESTED, RegistrationStatus.GOING, RegistrationStatus.WAITLIST}
    ),
    RegistrationStatus.REQUESTED: frozenset({RegistrationStatus.GOING, RegistrationStatus.REMOVED}),
    RegistrationStatus.WAITLIST: frozenset({RegistrationStatus.GOING, RegistrationStatus.REMOVED}),
    RegistrationStatus.GOING: frozenset({RegistrationStatus.REMOVED}),
}


class AuditAction(str, enum.Enum):
    """Audit log action kinds."""

    EVENT_CREATE = "event.create"
    EVENT_UPDATE = "event.update"
    EVENT_CANCEL = "event.cancel"
    EVENT_RESCHEDULE = "event.reschedule"
    EVENT_DELETE = "event.delete"
    EVENT_ADD_CAPTAIN = "event.add_captain"
    EVENT_REMOVE_CAPTAIN = "event.remove_captain"
    REGISTRATION_APPROVE = "registration.approve"
    REGISTRATION_ADD = "registration.add"
    REGISTRATION_REMOVE = "registration.remove"
    REGISTRATION_PROMOTE = "registration.promote"
    REGISTRATION_BULK_APPROVE = "registration.bulk_approve"
    REGISTRATION_BULK_WAITLIST_TO_GOING = "registration.bulk_waitlist_to_going"
    REGISTRATION_REORDER_WAITLIST = "registration.reorder_waitlist"
    REGISTRATION_UPDATE_LINE_POSITION = "registration.update_line_position"


class User(Base):
    """Member accounts."""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String, nullable=False, unique=True)
    first_name = Column(String, nullable=False)
    last_name = Column(String, nullable=False)
    nickname = Column(String, nullable=True)
    phone = Column(String, nullable=True)
    is_admin = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    registrations = relationship(
        "EventRegistration", back_populates="user", cascade="all, delete-orphan"
    )
    captaincies = relationship("EventCaptain", back_populates="user", cascade="all, delete-orphan")

    __table_args__ = (Index("idx_users_email", "email"),)


class Event(Base):
    """League events (games, practices, extra ice)."""

    __tablename__ = "events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    league = Column(String(10), nullable=False)  # 'A', 'B', 'C', 'D'
    type = Column(String(20), nullable=False)  # 'league', 'extra'
    start_time = Column(DateTime(timezone=True), nullable=False)  # UTC
    location = Column(String, nullable=False, default="TBD")
    rink = Column(String, nullable=True)  # Ice sheet within the venue
    venue_key = Column(String(50), nullable=True)  # Key into utils.venues.VENUES
    description = Column(Text, nullable=True)
    has_fee = Column(Boolean, default=False, nullable=False)
    cost_amount = Column(Float, nullable=True)
    max_players = Column(Integer, nullable=True)  # NULL means unlimited
    approval_needed = Column(Boolean, default=False, nullable=False)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    roster_version = Column(
        Integer, default=0, server_default="0", nullable=False
    )  # Bumped by every roster mutation; the UPDATE doubles as the per-event lock
    created_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    # Relationships
    registrations = relationship(
        "EventRegistration", back_populates="event", cascade="all, delete-orphan", passive_deletes=True
    )
    captains = relationship(
        "EventCaptain", back_populates="event", cascade="all, delete-orphan", passive_deletes=True
    )
    creator = relationship("User", foreign_keys=[created_by])

    __table_args__ = (
        CheckConstraint("max_players IS NULL OR max_players >= 0", name="check_max_players_non_negative"),
        Index("idx_events_start_time", "start_time"),
        Index("idx_events_league", "league"),
    )


class EventRegistration(Base):
    """One row per (event, user); reactivated in place after removal."""

    __tablename__ = "event_registrations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    status = Column(String(20), nullable=False)  # RegistrationStatus value
    position = Column(Integer, default=0, nullable=False)  # Waitlist order; 0 otherwise
    line = Column(Integer, nullable=True)  # 1-5
    assigned_position = Column(String, nullable=True)  # Free text (e.g. "LW", "D", "G")
    joined_at = Column(DateTime(timezone=True), nullable=False)  # UTC
    removed_at = Column(DateTime(timezone=True), nullable=True)  # UTC

    # Relationships
    event = relationship("Event", back_populates="registrations")
    user = relationship("User", back_populates="registrations")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_registrations_event_user"),
        CheckConstraint(
            f"status IN ({', '.join(repr(s.value) for s in RegistrationStatus)})",
            name="check_registration_status_valid",
        ),
        CheckConstraint("line IS NULL OR (line >= 1 AND line <= 5)", name="check_registration_line_range"),
        Index("idx_event_registrations_event_status", "event_id", "status"),
        Index("idx_event_registrations_user", "user_id"),
    )


class EventCaptain(Base):
    """Per-event captain role (may approve requested registrations)."""

    __tablename__ = "event_captains"

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    # Relationships
    event = relationship("Event", back_populates="captains")
    user = relationship("User", back_populates="captaincies")

    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_captains_event_user"),
        Index("idx_event_captains_event", "event_id"),
    )


class AuditLog(Base):
    """Write-only log of admin and roster actions."""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)  # Actor
    action = Column(String(64), nullable=False)  # AuditAction value
    entity_type = Column(String(32), nullable=False)  # 'event', 'registration'
    entity_id = Column(String(64), nullable=True)
    details = Column(Text, nullable=True)  # JSON string
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    __table_args__ = (
        Index("idx_audit_logs_created_at", "created_at"),
        Index("idx_audit_logs_entity", "entity_type", "entity_id"),
    )
