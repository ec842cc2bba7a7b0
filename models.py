from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator
from sqlmodel import Field, SQLModel

from otp import utcnow


class DonationKind(str, Enum):
    food = "food"
    clothes = "clothes"


class DonationStatus(str, Enum):
    pending = "pending"
    picked = "picked"
    completed = "completed"
    rejected = "rejected"


class UTCDateTime(TypeDecorator):
    """
    Timezone-aware UTC timestamps on every backend. SQLite drops the offset
    on storage, so values read back without one are taken to be UTC.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


ACTIVE_STATUSES = (DonationStatus.pending, DonationStatus.picked)
TERMINAL_STATUSES = (DonationStatus.completed, DonationStatus.rejected)


class User(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    email: str = Field(index=True)
    name: str
    phone: Optional[str] = None
    is_donor: bool = False
    is_rider: bool = False
    password_hash: str


class DonationRequest(SQLModel, table=True):
    """
    One food or clothes pickup listing. Both kinds share this table and
    its id space; `kind` tells which payload columns are in use.
    """

    id: Optional[int] = Field(default=None, primary_key=True)
    kind: DonationKind = Field(index=True)
    requester_id: int = Field(foreign_key="user.id", index=True)
    claimant_id: Optional[int] = Field(default=None, foreign_key="user.id", index=True)

    # food
    food_type: Optional[str] = None
    price: Optional[float] = None
    provider_type: Optional[str] = None
    # clothes
    cloth_type: Optional[str] = None
    condition: Optional[str] = None

    quantity: int
    location: Optional[str] = None

    status: DonationStatus = Field(default=DonationStatus.pending, index=True)
    otp: Optional[str] = None
    otp_expiry: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    otp_issued_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    rejection_reason: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=UTCDateTime)

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES
