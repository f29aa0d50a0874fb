import logging
from dataclasses import dataclass
from email.message import EmailMessage

import aiosmtplib

from models.air_quality import RiskSignal

logger = logging.getLogger(__name__)


@dataclass
class SMTPConfig:
    host: str
    port: int
    from_addr: str
    username: str = ""
    password: str = ""
    start_tls: bool = True
    timeout: float = 10.0


class Mailer:
    """
    Send air quality alert emails over SMTP (aiosmtplib).

    Errors from aiosmtplib (connect, auth, timeout, recipient refused) are
    left to propagate; NotificationService turns them into DispatchError.
    """

    def __init__(self, cfg: SMTPConfig):
        if not cfg.host or not cfg.port:
            raise ValueError("smtp host/port required")
        if not cfg.from_addr:
            raise ValueError("smtp from address required")
        self.cfg = cfg

    @staticmethod
    def build_message(to: str, signal: RiskSignal, from_addr: str) -> EmailMessage:
        label = signal.label()
        msg = EmailMessage()
        msg["From"] = from_addr
        msg["To"] = to
        msg["Subject"] = f"Air Quality Alert: {label}"
        lines = [
            "Hello,",
            "",
            "The air quality at your subscribed location has reached an alert level.",
            "",
            f"Risk status: {label}",
        ]
        if signal.threshold is not None:
            lines.append(f"Your threshold: {round(signal.threshold)}")
        lines += [
            "",
            "Please take the necessary precautions and avoid going outside if possible.",
            "",
            "Clean Breathing",
        ]
        msg.set_content("\n".join(lines))
        return msg

    async def send_alert(self, to: str, signal: RiskSignal) -> None:
        if not to:
            raise ValueError("recipient email is empty")
        msg = self.build_message(to, signal, self.cfg.from_addr)
        await aiosmtplib.send(
            msg,
            hostname=self.cfg.host,
            port=self.cfg.port,
            username=self.cfg.username or None,
            password=self.cfg.password or None,
            start_tls=self.cfg.start_tls,
            timeout=self.cfg.timeout,
        )
        logger.info("[Mailer] Alert email sent to %s (%s)", to, signal.label())
