"""
SMTP delivery of magic-link emails.
"""
import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate
from typing import Optional

from src.api import config
from src.api.errors import NotificationError

logger = logging.getLogger(__name__)

SUBJECT = "Your access to your personal memory"

HTML_TEMPLATE = """
<p>Hello,</p>
<p>You asked to access your personal memory.</p>
<p>Just click this link to come in:</p>
<p><a href="{link}">{link}</a></p>
<p>No password. No setup. Just your memory, there when you need it.</p>
<p>This link is valid for {ttl} minutes and can only be used once.</p>
"""

TEXT_TEMPLATE = (
    "Hello,\n\n"
    "You asked to access your personal memory. Open this link to come in:\n\n"
    "{link}\n\n"
    "This link is valid for {ttl} minutes and can only be used once.\n"
)


class SMTPMailer:
    """Sends the login email through an SMTP relay (STARTTLS + login)."""

    def __init__(
        self,
        smtp_host: Optional[str] = None,
        smtp_port: Optional[int] = None,
        smtp_user: Optional[str] = None,
        smtp_password: Optional[str] = None,
        from_email: Optional[str] = None,
        from_name: Optional[str] = None,
        log_only: Optional[bool] = None,
    ):
        self.smtp_host = smtp_host or config.SMTP_HOST
        self.smtp_port = smtp_port or config.SMTP_PORT
        self.smtp_user = smtp_user or config.SMTP_USER
        self.smtp_password = smtp_password or config.SMTP_PASSWORD
        self.from_email = from_email or config.SMTP_FROM_EMAIL
        self.from_name = from_name or config.SMTP_FROM_NAME

        self.enabled = all([self.smtp_host, self.smtp_user, self.smtp_password, self.from_email])
        # Without SMTP in dev, the link goes to the log instead of an inbox
        self.log_only = (not self.enabled and config.ENV == "dev") if log_only is None else log_only
        if not self.enabled:
            logger.warning("SMTP not fully configured. Set SMTP_* environment variables.")

    def send_login_link(self, to_email: str, link: str, ttl_minutes: int) -> None:
        """
        Send the magic link to ``to_email``.

        Raises:
            NotificationError if the email could not be handed to the relay.
        """
        if self.log_only:
            logger.warning("SMTP disabled, login link for %s not sent", to_email)
            logger.debug("Login link for %s: %s", to_email, link)
            return
        if not self.enabled:
            raise NotificationError()

        msg = MIMEMultipart("alternative")
        msg["Subject"] = SUBJECT
        msg["From"] = f"{self.from_name} <{self.from_email}>"
        msg["To"] = to_email
        msg["Date"] = formatdate(localtime=False)
        msg.attach(MIMEText(TEXT_TEMPLATE.format(link=link, ttl=ttl_minutes), "plain"))
        msg.attach(MIMEText(HTML_TEMPLATE.format(link=link, ttl=ttl_minutes), "html"))

        try:
            with smtplib.SMTP(self.smtp_host, self.smtp_port, timeout=30) as server:
                server.starttls()
                server.login(self.smtp_user, self.smtp_password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as exc:
            logger.exception("Failed to send login email to %s", to_email)
            raise NotificationError() from exc

        logger.info("Login email sent to %s", to_email)
