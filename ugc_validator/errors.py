"""Exceptions raised across the validation pipeline."""
from typing import List, Optional


class UGCValidationError(Exception):
    """Base class for pipeline errors."""


class SubmissionValidationError(UGCValidationError):
    """Submission rejected before any external call."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Invalid submission")


class ClassifierError(UGCValidationError):
    """Vision classifier could not produce a usable answer (not the same as a Reject)."""

    def __init__(self, message: str, provider: Optional[str] = None, status_code: Optional[int] = None):
        self.provider = provider
        self.status_code = status_code
        super().__init__(message)


class BlobStoreError(UGCValidationError):
    """Upload to a blob store backend failed."""


class RecordStoreError(UGCValidationError):
    """Order record store read/write failed. Retryable by the caller."""


class ConcurrentUpdateError(RecordStoreError):
    """A conditional write lost against another writer."""


class OrderAlreadyRewardedError(UGCValidationError):
    """Order already has an accepted review and a reward."""

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(
            f"Order {order_id} already has an accepted review. A new review cannot be added."
        )


class RewardPoolError(UGCValidationError):
    """Reward code pool unreachable or exhausted."""


class CodeAlreadyAssignedError(RewardPoolError):
    """The code was taken by another order between fetch and assign."""


class NotificationError(UGCValidationError):
    """Notification could not be delivered."""
