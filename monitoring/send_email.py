# -*- codeing = utf-8 -*-
# @Time : 2023-03-29 3:56 p.m.
# @Author: weijiazhao
# @File : send_email.py
# @Software: PyCharm

import datetime as _dt
import html
import logging
import smtplib
from email.header import Header
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr, parseaddr
from typing import List, Tuple

from configuration import MailSettings

LOGGER = logging.getLogger(__name__)

TIMESTAMP_FORMAT = "%a %b %d %H:%M:%S %Y"


def build_subject(url: str, label: str) -> str:
    return f"Monitor - {url} - {label}"


def build_body(url: str, label: str, status: int,
               occurred_at: _dt.datetime) -> str:
    timestamp = occurred_at.strftime(TIMESTAMP_FORMAT)
    body = f"<center><h3>{html.escape(url)} is {html.escape(label)}</h3>"
    body += f"<p><strong>({status})</strong> @ {timestamp}</p>"
    body += "<br><br></center>"
    return body


def build_alert_message(url: str, label: str, status: int,
                        occurred_at: _dt.datetime) -> Tuple[str, str]:
    return build_subject(url, label), build_body(url, label, status,
                                                 occurred_at)


def _split_recipients(recipients: str) -> List[str]:
    addresses = [addr.strip() for addr in recipients.split(",") if addr.strip()]
    if not addresses:
        raise ValueError("Recipient address must not be empty")
    return addresses


def _format_address(address: str) -> str:
    """Render an address for a header, encoding any display name as UTF-8."""

    name, email_addr = parseaddr(address)
    if not email_addr:
        return str(Header(name or address, "utf-8"))
    if name:
        return formataddr((str(Header(name, "utf-8")), email_addr))
    return email_addr


def _extract_email(address: str) -> str:
    return parseaddr(address)[1] or address


def compose_message(subject: str, body: str,
                    settings: MailSettings) -> Tuple[MIMEMultipart, str, List[str]]:
    """Build the MIME message plus the SMTP envelope sender and recipients."""

    send_to_list = _split_recipients(settings.recipient)

    message = MIMEMultipart()
    message['From'] = _format_address(settings.from_addr)
    message['To'] = ", ".join(_format_address(addr) for addr in send_to_list)
    message['Subject'] = Header(subject, 'utf-8')
    message.attach(MIMEText(body, 'html', 'utf-8'))

    transmit_from = _extract_email(settings.from_addr)
    transmit_to = [_extract_email(addr) for addr in send_to_list]
    return message, transmit_from, transmit_to


def send_email(subject: str, body: str, settings: MailSettings) -> None:
    message, transmit_from, transmit_to = compose_message(subject, body,
                                                          settings)

    smtp_factory = smtplib.SMTP_SSL if settings.use_ssl else smtplib.SMTP

    try:
        with smtp_factory(settings.server,
                          settings.port,
                          timeout=settings.timeout) as server:
            if not settings.use_ssl:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls()
                    server.ehlo()
            if settings.username:
                server.login(settings.username, settings.password)
            server.sendmail(transmit_from, transmit_to, message.as_string())
    except smtplib.SMTPAuthenticationError:
        LOGGER.exception(
            "mail.smtp.authentication_error server=%s username=%s recipients=%s",
            settings.server,
            settings.username,
            message['To'],
        )
        raise
    except smtplib.SMTPException:
        LOGGER.exception(
            "mail.smtp.communication_error server=%s port=%s recipients=%s",
            settings.server,
            settings.port,
            message['To'],
        )
        raise
    except OSError:
        LOGGER.exception(
            "mail.smtp.connection_error server=%s port=%s recipients=%s",
            settings.server,
            settings.port,
            message['To'],
        )
        raise

    LOGGER.info("mail.smtp.sent subject=%s recipients=%s", subject,
                message['To'])


def send_notification(url: str, label: str, status: int,
                      occurred_at: _dt.datetime, *,
                      settings: MailSettings) -> None:
    """Send the alert for ``url`` changing to ``label``; raises on failure."""

    subject, body = build_alert_message(url, label, status, occurred_at)
    send_email(subject, body, settings)
