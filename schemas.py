from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

from models import DonationKind, DonationStatus


class FoodDonationCreate(BaseModel):
    food_type: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    price: Optional[float] = Field(default=None, ge=0)
    provider_type: Optional[str] = None
    location: Optional[str] = None


class ClothesDonationCreate(BaseModel):
    cloth_type: str = Field(min_length=1)
    quantity: int = Field(gt=0)
    condition: Optional[str] = None
    location: Optional[str] = None


PAYLOAD_SCHEMAS = {
    DonationKind.food: FoodDonationCreate,
    DonationKind.clothes: ClothesDonationCreate,
}


class DonationCreated(BaseModel):
    id: int
    kind: DonationKind
    otp: str
    otp_expiry: datetime


class DonationRead(BaseModel):
    """Public view of a donation request. The handoff code is never included."""

    id: int
    kind: DonationKind
    requester_id: int
    claimant_id: Optional[int] = None
    food_type: Optional[str] = None
    price: Optional[float] = None
    provider_type: Optional[str] = None
    cloth_type: Optional[str] = None
    condition: Optional[str] = None
    quantity: int
    location: Optional[str] = None
    status: DonationStatus
    rejection_reason: Optional[str] = None
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)


class ClaimResult(BaseModel):
    otp: str


class VerifyData(BaseModel):
    code: str = Field(min_length=1)


class VerifyResult(BaseModel):
    kind: DonationKind


class RejectData(BaseModel):
    reason: str = Field(min_length=1)


class ReissueResult(BaseModel):
    otp: str
    otp_expiry: datetime


class StatusRead(BaseModel):
    id: int
    status: DonationStatus


class UserCreate(BaseModel):
    email: EmailStr
    name: str
    password: str = Field(min_length=6)
    phone: Optional[str] = None
    is_donor: bool = False
    is_rider: bool = False


class UserRead(BaseModel):
    id: int
    email: EmailStr
    name: str
    phone: Optional[str] = None
    is_donor: bool
    is_rider: bool

    model_config = ConfigDict(from_attributes=True)


class LoginData(BaseModel):
    email: EmailStr
    password: str

    role: Literal["donor", "rider"]
