"""
Outbound email through an SMTP relay
"""

import logging
import smtplib
import ssl
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import parseaddr
from typing import List, Optional, Union

from config import EMAIL_FROM_ADDRESS, SMTP_HOST, SMTP_PASSWORD, SMTP_PORT, SMTP_USERNAME

logger = logging.getLogger(__name__)


class Mailer:
    def __init__(
        self,
        host: str = SMTP_HOST,
        port: int = SMTP_PORT,
        username: Optional[str] = SMTP_USERNAME,
        password: Optional[str] = SMTP_PASSWORD,
        from_address: str = EMAIL_FROM_ADDRESS,
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.from_address = from_address

    def send(self, to: Union[str, List[str]], subject: str, html: str) -> None:
        """Send an HTML email. Raises on any SMTP failure."""
        recipients = [to] if isinstance(to, str) else list(to)

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.from_address
        msg["To"] = ", ".join(recipients)
        msg.attach(MIMEText(html, "html"))

        context = ssl.create_default_context()
        if self.port == 465:
            server = smtplib.SMTP_SSL(self.host, self.port, context=context, timeout=30)
        else:
            server = smtplib.SMTP(self.host, self.port, timeout=30)
        # The connection closes on exit even when the handshake fails
        with server:
            if self.port != 465:
                server.starttls(context=context)
            if self.username:
                server.login(self.username, self.password or "")
            server.sendmail(parseaddr(self.from_address)[1], recipients, msg.as_string())
        logger.info(f"Email sent to {msg['To']}: {subject}")


_mailer: Optional[Mailer] = None


def get_mailer() -> Mailer:
    global _mailer
    if _mailer is None:
        _mailer = Mailer()
    return _mailer
