"""
Console email sender adapter - Implements EmailSender protocol.

This module provides a console-based implementation of the domain's
email sender port, logging one-time codes to stdout for development.
"""

import logging

logger = logging.getLogger(__name__)


class ConsoleEmailSender:
    """
    Implements EmailSender protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - prints codes to stdout.
    """

    def send_verification_code(self, email: str, name: str, code: str) -> None:
        """
        Log verification code to console (simulates email delivery).

        The code is logged at INFO level to be visible in container logs.

        Args:
            email: Recipient email address (normalized by domain layer)
            name: Greeting name
            code: One-time verification code
        """
        logger.info("[VERIFICATION] Email: %s Name: %s Code: %s", email, name, code)

    def send_reset_code(self, email: str, name: str, code: str) -> None:
        """Log password reset code to console (simulates email delivery)."""
        logger.info("[PASSWORD RESET] Email: %s Name: %s Code: %s", email, name, code)
