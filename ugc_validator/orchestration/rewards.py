"""Reward code selection, assignment and delivery."""
import logging
import secrets
from typing import Optional

from ugc_validator.types import RewardIssue
from ugc_validator.errors import (
    CodeAlreadyAssignedError,
    NotificationError,
    RewardPoolError,
)
from ugc_validator.config.rules import (
    DISCOUNT_CODE_ALPHABET,
    DISCOUNT_CODE_GROUP_LENGTH,
    DISCOUNT_CODE_PREFIX,
)
from ugc_validator.notifications.email_channel import compose_reward_email

logger = logging.getLogger(__name__)


def generate_formatted_code(prefix: str = DISCOUNT_CODE_PREFIX) -> str:
    """Random PREFIX-XXXX-XXXX code from uppercase letters and digits."""
    groups = [
        "".join(secrets.choice(DISCOUNT_CODE_ALPHABET) for _ in range(DISCOUNT_CODE_GROUP_LENGTH))
        for _ in range(2)
    ]
    return "-".join([prefix] + groups)


class RewardIssuer:
    """Hands out one code per fresh accepted order and tries to deliver it."""

    def __init__(self, pool, notifier=None, prefix: str = DISCOUNT_CODE_PREFIX, max_attempts: int = 3):
        self.pool = pool
        self.notifier = notifier
        self.prefix = prefix
        self.max_attempts = max(1, max_attempts)

    def _assign_from_pool(self, order_id: str, email: str) -> Optional[str]:
        """Claim an available pool code, or None when the pool cannot supply one."""
        if self.pool is None:
            return None

        for attempt in range(1, self.max_attempts + 1):
            try:
                candidate = self.pool.fetch_available()
                if candidate is None:
                    logger.warning("Reward code pool exhausted, generating fallback code")
                    return None
                self.pool.mark_assigned(candidate.code, order_id, email)
                logger.info(f"Assigned pool code {candidate.code} to order {order_id}")
                return candidate.code
            except CodeAlreadyAssignedError as e:
                logger.warning(f"Lost race for reward code (attempt {attempt}/{self.max_attempts}): {e}")
            except RewardPoolError as e:
                logger.warning(f"Reward code pool unavailable, generating fallback code: {e}")
                return None

        logger.warning(f"No pool code claimed after {self.max_attempts} attempts, generating fallback code")
        return None

    def _deliver(self, code: str, order_id: str, email: str) -> bool:
        if self.notifier is None:
            logger.warning(f"No notification channel configured, code for order {order_id} not emailed")
            return False
        subject, body = compose_reward_email(code, order_id)
        try:
            self.notifier.send(email, subject, body)
            return True
        except NotificationError as e:
            logger.error(f"Reward email for order {order_id} failed, code stays assigned: {e}")
            return False

    def issue(self, order_id: str, email: str) -> RewardIssue:
        """Assign a code to the order and email it. Never raises on pool or mail failures."""
        code = self._assign_from_pool(order_id, email)
        from_pool = code is not None
        if code is None:
            code = generate_formatted_code(self.prefix)
            logger.info(f"Generated fallback reward code {code} for order {order_id}")

        delivered = self._deliver(code, order_id, email)
        return RewardIssue(code=code, from_pool=from_pool, delivery_confirmed=delivered)
