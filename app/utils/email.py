import logging
import smtplib
from email.message import EmailMessage
from typing import Protocol

from app.config import settings
from app.models.otp_record import OtpPurpose

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def send(self, destination: str, subject: str, body: str, is_html: bool = False) -> None:
        ...


# ─── Console (development) ────────────────────────────────────────────────────
class ConsoleNotifier:
    """
    SMTP disabled; message printed to the log for development.
    """

    def send(self, destination: str, subject: str, body: str, is_html: bool = False) -> None:
        logger.info("=" * 60)
        logger.info(f"[EMAIL]  To      : {destination}")
        logger.info(f"[EMAIL]  Subject : {subject}")
        logger.info(f"[EMAIL]  Body    : {body}")
        logger.info("=" * 60)


# ─── SMTP ─────────────────────────────────────────────────────────────────────
class SmtpNotifier:
    def __init__(
        self,
        host: str,
        port: int,
        username: str,
        password: str,
        sender: str,
        use_tls: bool = True,
        timeout: int = 10,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.sender = sender or username
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, destination: str, subject: str, body: str, is_html: bool = False) -> None:
        msg = EmailMessage()
        msg["Subject"] = subject
        msg["From"] = self.sender
        msg["To"] = destination
        msg.set_content(body, subtype="html" if is_html else "plain")

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.send_message(msg)
        logger.info(f"Email '{subject}' sent to {destination}")


def build_notifier() -> Notifier:
    if settings.EMAIL_BACKEND == "smtp":
        return SmtpNotifier(
            host=settings.SMTP_HOST,
            port=settings.SMTP_PORT,
            username=settings.SMTP_USERNAME,
            password=settings.SMTP_PASSWORD,
            sender=settings.SMTP_FROM,
            use_tls=settings.SMTP_USE_TLS,
        )
    return ConsoleNotifier()


# ─── OTP Templates ────────────────────────────────────────────────────────────
_OTP_SUBJECTS = {
    OtpPurpose.ACTIVATION:     "Activate your account",
    OtpPurpose.PASSWORD_RESET: "Password reset code",
}

_OTP_INSTRUCTIONS = {
    OtpPurpose.ACTIVATION:     "Use this code to activate your account.",
    OtpPurpose.PASSWORD_RESET: "Use this code to reset your password. "
                               "If you did not ask for a reset, ignore this email.",
}

_OTP_HTML = """\
<html>
  <body style="font-family: 'Helvetica Neue', Helvetica, Arial, sans-serif; background-color: #f8f9fa;">
    <div style="max-width: 600px; margin: 0 auto; background-color: #ffffff; padding: 20px;">
      <div style="background-color: #28a745; color: white; padding: 15px; text-align: center; font-size: 20px;">
        {heading}
      </div>
      <div style="padding: 20px; text-align: center;">
        <p>Hello,</p>
        <p>Your OTP code is:</p>
        <p style="font-size: 32px; font-weight: bold; color: #28a745;">{code}</p>
        <p>{instructions} This code is valid for the next {minutes} minutes.</p>
      </div>
    </div>
  </body>
</html>
"""


def render_otp_email(purpose: OtpPurpose, code: str, minutes: int) -> tuple[str, str]:
    """Return (subject, html_body) for an OTP message."""
    subject = _OTP_SUBJECTS[purpose]
    body = _OTP_HTML.format(
        heading=subject,
        code=code,
        instructions=_OTP_INSTRUCTIONS[purpose],
        minutes=minutes,
    )
    return subject, body
