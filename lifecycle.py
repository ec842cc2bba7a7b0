from datetime import datetime
from typing import Any, Callable, List, Mapping, Optional

from loguru import logger
from pydantic import ValidationError

from errors import (
    AlreadyClaimed,
    AlreadyTerminal,
    DonationValidationError,
    Expired,
    InvalidCode,
    NotAllowed,
    NotFound,
    TooSoon,
)
from models import ACTIVE_STATUSES, DonationKind, DonationRequest, DonationStatus
from otp import OTPIssuer, utcnow
from schemas import PAYLOAD_SCHEMAS
from store import DonationStore


class DonationRegistry:
    """Creates, lists, looks up, rejects and re-codes donation requests."""

    def __init__(self, store: DonationStore, issuer: Optional[OTPIssuer] = None) -> None:
        self.store = store
        self.issuer = issuer or OTPIssuer()

    def create(
        self,
        kind: DonationKind,
        requester_id: int,
        fields: Mapping[str, Any],
    ) -> DonationRequest:
        try:
            kind = DonationKind(kind)
        except ValueError:
            raise DonationValidationError(f"Unknown donation kind: {kind!r}") from None
        try:
            payload = PAYLOAD_SCHEMAS[kind].model_validate(dict(fields))
        except ValidationError as exc:
            raise DonationValidationError(
                f"Invalid {kind.value} donation fields",
                errors=exc.errors(include_url=False, include_context=False),
            ) from exc

        issued = self.issuer.generate()
        issued_at = self.issuer.issued_at(issued)
        donation = DonationRequest(
            kind=kind,
            requester_id=requester_id,
            status=DonationStatus.pending,
            otp=issued.code,
            otp_expiry=issued.expires_at,
            otp_issued_at=issued_at,
            created_at=issued_at,
            **payload.model_dump(),
        )
        donation = self.store.insert(donation)
        logger.info(
            "Donation {} ({}) created by requester {}", donation.id, kind.value, requester_id
        )
        return donation

    def list_pending(self, kind: Optional[DonationKind] = None) -> List[DonationRequest]:
        """Pending requests, newest first. Both kinds when `kind` is None."""
        return self.store.list_pending(kind)

    def list_for_requester(self, requester_id: int) -> List[DonationRequest]:
        return self.store.list_by_requester(requester_id)

    def list_for_claimant(self, claimant_id: int) -> List[DonationRequest]:
        return self.store.list_by_claimant(claimant_id)

    def get(self, donation_id: int) -> DonationRequest:
        donation = self.store.get(donation_id)
        if donation is None:
            raise NotFound()
        return donation

    def reject(self, donation_id: int, reason: str) -> DonationRequest:
        """
        Move a pending or picked request to rejected. Rejecting a record that
        is already completed or rejected raises AlreadyTerminal and changes
        nothing.
        """
        if not reason or not reason.strip():
            raise DonationValidationError("A rejection reason is required")
        current = self.get(donation_id)
        if current.is_terminal:
            raise AlreadyTerminal()

        rejected = self.store.conditional_update(
            donation_id,
            ACTIVE_STATUSES,
            {
                "status": DonationStatus.rejected,
                "otp": None,
                "otp_expiry": None,
                "rejection_reason": reason,
            },
        )
        if rejected is None:
            # only a terminal transition can take a record out of the active set
            raise AlreadyTerminal()
        logger.info("Donation {} rejected (was {})", donation_id, current.status.value)
        return rejected

    def reissue_otp(self, donation_id: int) -> DonationRequest:
        current = self.get(donation_id)
        if current.is_terminal:
            raise AlreadyTerminal()

        issued = self.issuer.reissue(current.otp_issued_at)
        updated = self.store.conditional_update(
            donation_id,
            ACTIVE_STATUSES,
            {
                "otp": issued.code,
                "otp_expiry": issued.expires_at,
                "otp_issued_at": self.issuer.issued_at(issued),
            },
            match={"otp_issued_at": current.otp_issued_at},
        )
        if updated is None:
            latest = self.get(donation_id)
            if latest.is_terminal:
                raise AlreadyTerminal()
            # another resend got there first
            raise TooSoon(retry_after=int(self.issuer.cooldown.total_seconds()))
        logger.info("Handoff code reissued for donation {}", donation_id)
        return updated


class ClaimCoordinator:
    def __init__(self, store: DonationStore) -> None:
        self.store = store

    def claim(self, donation_id: int, claimant_id: int) -> str:
        """
        Reserve a pending request for `claimant_id` and return its handoff
        code. Exactly one of several concurrent callers wins; the rest get
        AlreadyClaimed.
        """
        claimed = self.store.conditional_update(
            donation_id,
            [DonationStatus.pending],
            {"status": DonationStatus.picked, "claimant_id": claimant_id},
        )
        if claimed is None:
            if self.store.get(donation_id) is None:
                raise NotFound()
            logger.info("Claim on donation {} by {} lost: not pending", donation_id, claimant_id)
            raise AlreadyClaimed()
        logger.info("Donation {} picked by claimant {}", donation_id, claimant_id)
        return claimed.otp


class HandoffVerifier:
    def __init__(
        self,
        store: DonationStore,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.clock = clock

    def verify(self, donation_id: int, claimant_id: int, code: str) -> DonationKind:
        """
        Complete a picked request when the claimant presents its code.

        Guards run in a fixed order: existence (NotFound), state and
        identity (NotAllowed), expiry (Expired), then code (InvalidCode).
        A failed expiry or code check leaves the request picked.
        """
        donation = self.store.get(donation_id)
        if donation is None:
            raise NotFound()

        if donation.status != DonationStatus.picked or donation.claimant_id != claimant_id:
            logger.info("Verify on donation {} by {} not allowed", donation_id, claimant_id)
            raise NotAllowed()

        if donation.otp_expiry is None or self.clock() > donation.otp_expiry:
            raise Expired()

        if code != donation.otp:
            logger.debug("Wrong handoff code presented for donation {}", donation_id)
            raise InvalidCode()

        completed = self.store.conditional_update(
            donation_id,
            [DonationStatus.picked],
            {"status": DonationStatus.completed, "otp": None, "otp_expiry": None},
            match={"claimant_id": claimant_id, "otp": donation.otp},
        )
        if completed is None:
            latest = self.store.get(donation_id)
            if latest is None or latest.status != DonationStatus.picked:
                raise NotAllowed()
            # code was reissued between our read and the write
            raise InvalidCode()

        logger.info("Donation {} completed by claimant {}", donation_id, claimant_id)
        return completed.kind


class StatusQuery:
    def __init__(self, store: DonationStore) -> None:
        self.store = store

    def check_status(self, donation_id: int) -> DonationStatus:
        donation = self.store.get(donation_id)
        if donation is None:
            raise NotFound()
        return donation.status
