"""
Pydantic models for API request/response validation.
"""

from datetime import datetime
from typing import Optional, List, Any
from pydantic import BaseModel, Field


class EventCreate(BaseModel):
    """Request to create an event."""

    name: str
    league: str
    type: str
    start_time: datetime
    location: Optional[str] = None
    venue_key: Optional[str] = None
    rink: Optional[str] = None
    description: Optional[str] = None
    has_fee: bool = False
    cost_amount: Optional[float] = None
    max_players: Optional[int] = None  # None means unlimited
    approval_needed: bool = False
    captain_ids: List[int] = Field(default_factory=list)


class EventUpdate(BaseModel):
    """Partial event update. Only fields that are sent are applied."""

    name: Optional[str] = None
    league: Optional[str] = None
    type: Optional[str] = None
    start_time: Optional[datetime] = None
    location: Optional[str] = None
    venue_key: Optional[str] = None
    rink: Optional[str] = None
    description: Optional[str] = None
    has_fee: Optional[bool] = None
    cost_amount: Optional[float] = None
    max_players: Optional[int] = None
    approval_needed: Optional[bool] = None
    cancelled: Optional[bool] = None


class EventResponse(BaseModel):
    """Event summary."""

    id: int
    name: str
    league: str
    type: str
    start_time: str
    location: str
    rink: Optional[str] = None
    venue_key: Optional[str] = None
    description: Optional[str] = None
    has_fee: bool
    cost_amount: Optional[float] = None
    max_players: Optional[int] = None
    approval_needed: bool
    cancelled_at: Optional[str] = None
    is_active: bool
    going_count: Optional[int] = None
    waitlist_count: Optional[int] = None
    requested_count: Optional[int] = None


class RegistrationUser(BaseModel):
    id: int
    first_name: str
    last_name: str
    nickname: Optional[str] = None
    display_name: str


class RegistrationResponse(BaseModel):
    """One event registration."""

    id: int
    event_id: int
    user_id: int
    status: str
    position: int
    line: Optional[int] = None
    assigned_position: Optional[str] = None
    joined_at: Optional[str] = None
    removed_at: Optional[str] = None
    user: Optional[RegistrationUser] = None


class RosterResponse(BaseModel):
    """Active registrations grouped by status, each in roster order."""

    going: List[RegistrationResponse]
    waitlist: List[RegistrationResponse]
    requested: List[RegistrationResponse]


class EventDetailResponse(EventResponse):
    """Event with its roster and the viewer's own status."""

    going: List[RegistrationResponse]
    waitlist: List[RegistrationResponse]
    requested: List[RegistrationResponse]
    my_status: Optional[str] = None


class LeaveResponse(BaseModel):
    """Result of a leave or removal; promoted is the registration that took the slot."""

    registration: RegistrationResponse
    promoted: Optional[RegistrationResponse] = None


class BulkApproveResponse(BaseModel):
    count: int
    approved: List[RegistrationResponse]


class BulkPromoteResponse(BaseModel):
    count: int
    promoted: List[RegistrationResponse]


class WaitlistOrderRequest(BaseModel):
    """Full waitlist order, first entry first."""

    user_ids: List[int]


class LinePositionRequest(BaseModel):
    """Line (1-5) and free-text position for a rostered player; null clears."""

    line: Optional[int] = None
    assigned_position: Optional[str] = None


class CaptainResponse(BaseModel):
    user_id: int
    display_name: str
    email: Optional[str] = None


class AuditLogEntry(BaseModel):
    id: int
    user_id: Optional[int] = None
    user_name: Optional[str] = None
    action: str
    entity_type: str
    entity_id: Optional[str] = None
    details: Optional[Any] = None
    created_at: Optional[str] = None


class AuditLogResponse(BaseModel):
    entries: List[AuditLogEntry]
    total: int
