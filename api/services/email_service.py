import smtplib
import ssl
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.utils import make_msgid
from typing import Optional
import logging

from config import Settings

logger = logging.getLogger(__name__)


class EmailService:
    """
    Sends transactional email (verification links, password resets) over SMTP.
    Works with any SMTP server (Gmail, SendGrid, Mailgun, AWS SES, etc.)
    """

    def __init__(self, settings: Settings):
        self.smtp_host = settings.SMTP_HOST
        self.smtp_port = int(settings.SMTP_PORT)
        self.smtp_user = settings.SMTP_USER
        self.smtp_password = settings.SMTP_PASSWORD
        self.sender_email = settings.SENDER_EMAIL
        self.sender_name = settings.SENDER_NAME
        self.use_tls = settings.SMTP_USE_TLS
        self.enabled = settings.smtp_configured
        if not self.enabled:
            logger.warning("SMTP not configured, outgoing email will only be logged")

    def send(
        self,
        to: str,
        subject: str,
        text: Optional[str] = None,
        html: Optional[str] = None,
    ) -> Optional[str]:
        """
        Sends one email.

        Args:
            to (str): The recipient's email address.
            subject (str): The subject line.
            text (str, optional): Plain-text body.
            html (str, optional): HTML body.

        Returns:
            str | None: The Message-ID of the sent email, or None when SMTP
                        is not configured and the message was only logged.

        Raises:
            smtplib.SMTPException: Delivery failed. Callers let it surface as
                                   an internal error.
        """
        if not self.enabled:
            logger.info(f"Email to {to} not sent (SMTP disabled): {subject}")
            return None

        message_id = make_msgid(domain=self.sender_email.split("@")[-1])
        message = MIMEMultipart("alternative")
        message["Subject"] = subject
        message["From"] = f"{self.sender_name} <{self.sender_email}>"
        message["To"] = to
        message["Message-ID"] = message_id

        if text:
            message.attach(MIMEText(text, "plain"))
        if html:
            message.attach(MIMEText(html, "html"))

        context = ssl.create_default_context()
        try:
            if self.smtp_port == 465:
                # SSL connection
                with smtplib.SMTP_SSL(self.smtp_host, self.smtp_port, context=context) as server:
                    self._login(server)
                    server.send_message(message)
            else:
                # TLS connection (port 587)
                with smtplib.SMTP(self.smtp_host, self.smtp_port) as server:
                    if self.use_tls:
                        server.starttls(context=context)
                    self._login(server)
                    server.send_message(message)
        except smtplib.SMTPAuthenticationError as e:
            logger.error(f"SMTP authentication failed: {e}")
            raise
        except smtplib.SMTPException as e:
            logger.error(f"SMTP error sending to {to}: {e}")
            raise

        logger.info(f"Email sent to {to}: {message_id}")
        return message_id

    def _login(self, server: smtplib.SMTP):
        if self.smtp_user and self.smtp_password:
            server.login(self.smtp_user, self.smtp_password)
