"""Per-order status transitions against the external record store."""
import logging
from typing import Optional

from ugc_validator.types import OrderRecord, OrderStatus, SubmissionRequest
from ugc_validator.errors import (
    ConcurrentUpdateError,
    OrderAlreadyRewardedError,
    RecordStoreError,
)

logger = logging.getLogger(__name__)


class OrderStateReconciler:
    """
    Moves an order to Accepted or Rejected after a normal-mode submission.

    Transitions:
        absent          -> accepted | rejected   (insert)
        not_yet         -> accepted | rejected   (conditional update)
        rejected        -> accepted              (conditional update)
        rejected        -> rejected              (no write)
        accepted        -> anything              (refused)

    Each write is conditional on the status and version that were read. A lost
    race is re-read and re-decided, so only one submission per order can ever
    observe a fresh transition to accepted.
    """

    def __init__(self, store, max_attempts: int = 3):
        self.store = store
        self.max_attempts = max(1, max_attempts)

    def ensure_not_rewarded(self, order_id: str) -> None:
        """
        Refuse early if the order already has an accepted review.

        Store read failures are logged and ignored here; reconcile() re-checks
        under compare-and-set and surfaces them.
        """
        try:
            record = self.store.get(order_id)
        except RecordStoreError as e:
            logger.warning(f"Pre-check for order {order_id} skipped, record store unavailable: {e}")
            return
        if record and record.status == OrderStatus.ACCEPTED:
            logger.info(f"Order {order_id} already rewarded, refusing submission before image analysis")
            raise OrderAlreadyRewardedError(order_id)

    def reconcile(
        self,
        request: SubmissionRequest,
        qualified: bool,
        image_url: Optional[str] = None
    ) -> Optional[OrderRecord]:
        """
        Record this submission's result for the order.

        Returns the updated record only on a fresh transition to accepted,
        None otherwise. Raises OrderAlreadyRewardedError if the order is
        already accepted, RecordStoreError if the store fails or the
        conflict retries run out.
        """
        new_status = OrderStatus.ACCEPTED if qualified else OrderStatus.REJECTED
        fields = {
            "status": new_status,
            "associated_email": request.order_email,
            "review_text": request.review_text,
            "customer_name": request.customer_name,
            "star_rating": request.star_rating,
            "image_url": image_url,
        }

        for attempt in range(1, self.max_attempts + 1):
            current = self.store.get(request.order_id)

            try:
                if current is None:
                    record = self.store.create(OrderRecord(
                        order_id=request.order_id,
                        status=new_status,
                        record_ref="",
                        associated_email=request.order_email,
                        review_text=request.review_text,
                        customer_name=request.customer_name,
                        star_rating=request.star_rating,
                        image_url=image_url,
                    ))
                    logger.info(f"Order {request.order_id}: created record with status {new_status.value}")
                    return record if new_status == OrderStatus.ACCEPTED else None

                if current.status == OrderStatus.ACCEPTED:
                    raise OrderAlreadyRewardedError(request.order_id)

                if current.status == OrderStatus.REJECTED and new_status == OrderStatus.REJECTED:
                    logger.info(f"Order {request.order_id}: still rejected, record left unchanged")
                    return None

                record = self.store.update_if(
                    request.order_id,
                    current.status,
                    current.version,
                    fields,
                )
                logger.info(
                    f"Order {request.order_id}: {current.status.value} -> {new_status.value} "
                    f"(v{current.version} -> v{record.version})"
                )
                return record if new_status == OrderStatus.ACCEPTED else None

            except ConcurrentUpdateError as e:
                logger.warning(
                    f"Order {request.order_id}: concurrent update detected "
                    f"(attempt {attempt}/{self.max_attempts}), re-reading: {e}"
                )

        raise RecordStoreError(
            f"Order {request.order_id}: gave up after {self.max_attempts} conflicting updates"
        )
