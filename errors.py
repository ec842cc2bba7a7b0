from typing import Any, List, Optional


class DonationError(Exception):
    """Base class for expected outcomes the lifecycle reports to callers."""

    code = "error"
    status_code = 400
    detail = "Donation request failed"

    def __init__(self, detail: Optional[str] = None) -> None:
        if detail is not None:
            self.detail = detail
        super().__init__(self.detail)


class DonationValidationError(DonationError):
    code = "validation_error"
    status_code = 422
    detail = "Invalid donation fields"

    def __init__(self, detail: Optional[str] = None, errors: Optional[List[Any]] = None) -> None:
        super().__init__(detail)
        self.errors = errors or []


class NotFound(DonationError):
    code = "not_found"
    status_code = 404
    detail = "Donation request not found"


class AlreadyClaimed(DonationError):
    code = "already_claimed"
    status_code = 409
    detail = "Donation request already taken"


class AlreadyTerminal(DonationError):
    code = "already_terminal"
    status_code = 409
    detail = "Donation request is already completed or rejected"


class NotAllowed(DonationError):
    code = "not_allowed"
    status_code = 403
    detail = "Not allowed to verify this donation request"


class Expired(DonationError):
    code = "expired"
    status_code = 410
    detail = "Handoff code has expired"


class InvalidCode(DonationError):
    code = "invalid"
    status_code = 400
    detail = "Handoff code does not match"


class TooSoon(DonationError):
    code = "too_soon"
    status_code = 429
    detail = "A handoff code was issued too recently"

    def __init__(self, retry_after: int) -> None:
        super().__init__(f"Try again in {retry_after} seconds")
        self.retry_after = retry_after
