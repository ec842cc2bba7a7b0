from typing import Annotated, List, Optional

from fastapi import APIRouter, Depends, HTTPException

from db import StoreDep
from lifecycle import ClaimCoordinator, DonationRegistry, HandoffVerifier, StatusQuery
from models import DonationKind
from schemas import (
    ClaimResult,
    ClothesDonationCreate,
    DonationCreated,
    DonationRead,
    FoodDonationCreate,
    RejectData,
    ReissueResult,
    StatusRead,
    VerifyData,
    VerifyResult,
)
from .auth import CurrentUserRoleDep, DonorDep, RiderDep

router = APIRouter(tags=["donations"])


def get_registry(store: StoreDep) -> DonationRegistry:
    return DonationRegistry(store)


def get_coordinator(store: StoreDep) -> ClaimCoordinator:
    return ClaimCoordinator(store)


def get_verifier(store: StoreDep) -> HandoffVerifier:
    return HandoffVerifier(store)


def get_status_query(store: StoreDep) -> StatusQuery:
    return StatusQuery(store)


RegistryDep = Annotated[DonationRegistry, Depends(get_registry)]
CoordinatorDep = Annotated[ClaimCoordinator, Depends(get_coordinator)]
VerifierDep = Annotated[HandoffVerifier, Depends(get_verifier)]
StatusQueryDep = Annotated[StatusQuery, Depends(get_status_query)]


def _created(donation) -> DonationCreated:
    return DonationCreated(
        id=donation.id,
        kind=donation.kind,
        otp=donation.otp,
        otp_expiry=donation.otp_expiry,
    )


@router.post("/food", response_model=DonationCreated, status_code=201)
def create_food_donation(
    payload: FoodDonationCreate,
    registry: RegistryDep,
    current: DonorDep,
):
    donation = registry.create(DonationKind.food, current["user"].id, payload.model_dump())
    return _created(donation)


@router.post("/clothes", response_model=DonationCreated, status_code=201)
def create_clothes_donation(
    payload: ClothesDonationCreate,
    registry: RegistryDep,
    current: DonorDep,
):
    donation = registry.create(DonationKind.clothes, current["user"].id, payload.model_dump())
    return _created(donation)


@router.get("/pending", response_model=List[DonationRead])
def list_pending(registry: RegistryDep, kind: Optional[DonationKind] = None):
    """
    Pending donations, newest first. Omit `kind` to get food and clothes together.
    """
    return registry.list_pending(kind)


@router.get("/mine", response_model=List[DonationRead])
def list_mine(registry: RegistryDep, current: CurrentUserRoleDep):
    """
    Donors see what they created; riders see what they picked up.
    """
    user = current["user"]
    if current["role"] == "rider":
        return registry.list_for_claimant(user.id)
    return registry.list_for_requester(user.id)


@router.get("/{donation_id}", response_model=DonationRead)
def get_donation(donation_id: int, registry: RegistryDep):
    return registry.get(donation_id)


@router.get("/{donation_id}/status", response_model=StatusRead)
def check_status(donation_id: int, status_query: StatusQueryDep):
    return StatusRead(id=donation_id, status=status_query.check_status(donation_id))


@router.post("/{donation_id}/claim", response_model=ClaimResult)
def claim_donation(
    donation_id: int,
    coordinator: CoordinatorDep,
    current: RiderDep,
):
    otp = coordinator.claim(donation_id, current["user"].id)
    return ClaimResult(otp=otp)


@router.post("/{donation_id}/verify", response_model=VerifyResult)
def verify_handoff(
    donation_id: int,
    data: VerifyData,
    verifier: VerifierDep,
    current: RiderDep,
):
    kind = verifier.verify(donation_id, current["user"].id, data.code)
    return VerifyResult(kind=kind)


@router.post("/{donation_id}/reject", response_model=DonationRead)
def reject_donation(
    donation_id: int,
    data: RejectData,
    registry: RegistryDep,
    current: CurrentUserRoleDep,
):
    user = current["user"]
    donation = registry.get(donation_id)
    if user.id not in (donation.requester_id, donation.claimant_id):
        raise HTTPException(
            status_code=403,
            detail="Only the donor or the assigned rider can reject this donation.",
        )
    return registry.reject(donation_id, data.reason)


@router.post("/{donation_id}/resend-otp", response_model=ReissueResult)
def resend_otp(
    donation_id: int,
    registry: RegistryDep,
    current: DonorDep,
):
    donation = registry.get(donation_id)
    if donation.requester_id != current["user"].id:
        raise HTTPException(
            status_code=403,
            detail="You can only resend codes for your own donations.",
        )
    donation = registry.reissue_otp(donation_id)
    return ReissueResult(otp=donation.otp, otp_expiry=donation.otp_expiry)
