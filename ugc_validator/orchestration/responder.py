"""Caller-facing response body."""
from datetime import datetime, timezone
from typing import Any, Dict

from ugc_validator.types import SubmissionResult


def build_response(result: SubmissionResult) -> Dict[str, Any]:
    request = result.request
    reward = result.reward
    return {
        "success": True,
        "mode": request.mode.value,
        "perImageResults": [outcome.to_dict() for outcome in result.outcomes],
        "summary": result.summary.to_dict(),
        "qualified": result.qualified,
        "rewardCode": reward.code if reward else None,
        "reviewId": result.review_id,
        "deliveryConfirmed": reward.delivery_confirmed if reward else None,
        "orderEcho": {
            "orderId": request.order_id,
            "email": request.order_email,
            "reviewText": request.review_text,
        },
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
