"""
Console notifier adapter - Implements Notifier protocol.

This module provides a console-based implementation of the domain's
notifier port, logging student lifecycle messages for demo purposes.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleNotifier:
    """
    Implements Notifier protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes; production swaps in an SMTP adapter.
    """

    def send_registration_received(self, email: str, first_name: str) -> None:
        """Log the registration acknowledgement."""
        logger.info(
            "[STUDENT-REGISTERED] Email: %s Message: Welcome %s, your student "
            "registration is being reviewed.",
            email,
            first_name,
        )

    def send_approval(self, email: str, first_name: str) -> None:
        logger.info(
            "[STUDENT-APPROVED] Email: %s Message: Congratulations %s, your student "
            "account has been approved! You now have access to student discounts.",
            email,
            first_name,
        )

    def send_rejection(self, email: str, first_name: str, reason: str) -> None:
        """Log the rejection, including the administrator's notes."""
        logger.info(
            "[STUDENT-REJECTED] Email: %s Message: Hello %s, unfortunately your student "
            "verification was not approved. Reason: %s",
            email,
            first_name,
            reason,
        )

    def send_conversion(self, email: str, first_name: str) -> None:
        logger.info(
            "[STUDENT-CONVERTED] Email: %s Message: Congratulations %s! Your student "
            "account has been converted to a regular account.",
            email,
            first_name,
        )
