"""
SMTP email sender adapter - Implements EmailSender protocol.

Renders plain-text and HTML bodies for verification and password reset
codes and delivers them through an SMTP relay. Transport failures are
raised as DeliveryError; the domain keeps the code it already stored.
"""

import logging
import smtplib
from email.message import EmailMessage
from email.utils import formataddr
from html import escape

from account_identity.domain.exceptions import DeliveryError

logger = logging.getLogger(__name__)

_TEXT_TEMPLATE = """\
Hello {name},

{intro}

{label}: {code}

This code will expire in {minutes} minutes.

If you didn't request this, please ignore this email.

Best regards,
The {app} Team
"""

_HTML_TEMPLATE = """\
<!DOCTYPE html>
<html>
<head><meta charset="UTF-8"><title>{title}</title></head>
<body style="font-family: Arial, sans-serif; color: #333; max-width: 600px; margin: 0 auto;">
  <h1 style="background-color: #000; color: #fff; padding: 20px; text-align: center;">{title}</h1>
  <p>Hello {name},</p>
  <p>{intro}</p>
  <p style="font-size: 32px; font-weight: bold; letter-spacing: 10px; text-align: center;">{code}</p>
  <p>This code will expire in {minutes} minutes.</p>
  <p>If you didn't request this, please ignore this email.</p>
  <p>Best regards,<br>The {app} Team</p>
</body>
</html>
"""


class SmtpEmailSender:
    """
    Implements EmailSender protocol via smtplib.

    Uses structural subtyping - no explicit inheritance from Protocol.
    Opens one SMTP session per message.
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender_address: str,
        sender_name: str,
        code_ttl_minutes: int,
        username: str | None = None,
        password: str | None = None,
        use_tls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = formataddr((sender_name, sender_address))
        self._app_name = sender_name
        self._code_ttl_minutes = code_ttl_minutes
        self._username = username
        self._password = password
        self._use_tls = use_tls
        self._timeout = timeout

    def send_verification_code(self, email: str, name: str, code: str) -> None:
        message = self.build_message(
            email,
            subject="Verify Your Email Address",
            title="Verify Your Email",
            intro="Thank you for signing up! Please use the verification code below "
            "to complete your registration:",
            label="Verification Code",
            name=name,
            code=code,
        )
        self._deliver(message)
        logger.info("Verification email sent to %s", email)

    def send_reset_code(self, email: str, name: str, code: str) -> None:
        message = self.build_message(
            email,
            subject="Reset Your Password",
            title="Reset Your Password",
            intro="We received a request to reset your password. Use the code below to proceed:",
            label="Reset Code",
            name=name,
            code=code,
        )
        self._deliver(message)
        logger.info("Password reset email sent to %s", email)

    def build_message(
        self,
        email: str,
        *,
        subject: str,
        title: str,
        intro: str,
        label: str,
        name: str,
        code: str,
    ) -> EmailMessage:
        """Render a multipart text/HTML message for one code."""
        fields = {
            "name": name or "there",
            "intro": intro,
            "label": label,
            "code": code,
            "minutes": self._code_ttl_minutes,
            "app": self._app_name,
            "title": title,
        }
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = self._sender
        message["To"] = email
        message.set_content(_TEXT_TEMPLATE.format(**fields))
        html_fields = {k: escape(str(v)) for k, v in fields.items()}
        message.add_alternative(_HTML_TEMPLATE.format(**html_fields), subtype="html")
        return message

    def _deliver(self, message: EmailMessage) -> None:
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as smtp:
                if self._use_tls:
                    smtp.starttls()
                if self._username:
                    smtp.login(self._username, self._password or "")
                smtp.send_message(message)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("SMTP delivery to %s failed: %s", message["To"], e)
            raise DeliveryError(str(e)) from e
