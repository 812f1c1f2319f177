"""Code delivery for development and test environments.

Production deployments plug their own mail transport in through
`ICodeDelivery`. This implementation only records that a code was
dispatched; in test mode it also keeps the codes so tests can read them.
"""

from typing import Dict

import structlog

from verigate.core.logging import mask_email
from verigate.domain.interfaces.collaborators import ICodeDelivery

logger = structlog.get_logger(__name__)


class LoggingCodeDelivery(ICodeDelivery):
    """Logs code dispatch without the code itself."""

    def __init__(self, test_mode: bool = False):
        self.test_mode = test_mode
        self.sent_codes: Dict[str, str] = {}

    async def send_code(
        self, subject_id: str, contact_address: str, code: str, expires_in_minutes: int
    ) -> bool:
        if self.test_mode:
            self.sent_codes[subject_id] = code
        logger.info(
            "Verification code dispatched",
            subject_id=subject_id,
            to_email=mask_email(contact_address),
            expires_in_minutes=expires_in_minutes,
            test_mode=self.test_mode,
        )
        return True
