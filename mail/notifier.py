"""
mail/notifier.py -- Outbound email transports.

A Notifier is constructed explicitly (in the API lifespan, or by a test),
opened once, handed to the MailDispatcher, and closed at shutdown. Nothing
here is a module-level singleton.

  SmtpNotifier     -- STARTTLS + login against a real SMTP relay. One
                      connection is held open between messages and
                      re-established if the server drops it. smtplib is
                      blocking, so every call runs in the threadpool.
  ConsoleNotifier  -- development fallback when SMTP is not configured.
                      Logs recipient, subject and body instead of sending.

send() returns True on success and raises on transport failure. The account
service never calls send() directly -- it goes through MailDispatcher, which
turns failures into log lines.
"""

from __future__ import annotations

import logging
import smtplib
import threading
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Protocol

from starlette.concurrency import run_in_threadpool

from core.config import Settings

logger = logging.getLogger("gatekeeper.mail")


class Notifier(Protocol):
    async def open(self) -> None: ...

    async def close(self) -> None: ...

    async def send(self, to_email: str, subject: str, html_body: str) -> bool: ...


class NotifierClosedError(RuntimeError):
    """send() was called before open() or after close()."""


class SmtpNotifier:
    """Send HTML mail through an SMTP relay.

    Usage:
        notifier = SmtpNotifier(settings)
        await notifier.open()
        await notifier.send("a@x.com", "Hello", "<p>hi</p>")
        await notifier.close()
    """

    def __init__(self, settings: Settings) -> None:
        self._host = settings.smtp_host
        self._port = settings.smtp_port
        self._username = settings.smtp_username
        self._password = settings.smtp_password
        self._use_tls = settings.smtp_use_tls
        self._timeout = settings.smtp_timeout_seconds
        self._sender = formataddr((settings.mail_from_name, settings.mail_from))
        self._conn: smtplib.SMTP | None = None
        self._opened = False
        # smtplib.SMTP is not thread-safe; concurrent sends share one socket.
        self._lock = threading.Lock()

    async def open(self) -> None:
        """Connect to the relay. A relay that is down at startup is not fatal:
        the first send() retries the connection."""
        self._opened = True
        try:
            await run_in_threadpool(self._connect)
        except (OSError, smtplib.SMTPException) as exc:
            logger.warning("SMTP relay %s:%d unavailable at startup (%s); will retry on send", self._host, self._port, exc)
            return
        logger.info("SMTP notifier connected to %s:%d", self._host, self._port)

    async def close(self) -> None:
        self._opened = False
        await run_in_threadpool(self._disconnect)
        logger.info("SMTP notifier closed")

    async def send(self, to_email: str, subject: str, html_body: str) -> bool:
        if not self._opened:
            raise NotifierClosedError("SMTP notifier is not open")
        message = self._build_message(to_email, subject, html_body)
        await run_in_threadpool(self._deliver, to_email, message)
        return True

    # ------------------------------------------------------------------
    # Blocking helpers -- only ever called from the threadpool
    # ------------------------------------------------------------------

    def _connect(self) -> None:
        with self._lock:
            self._conn = self._new_connection()

    def _new_connection(self) -> smtplib.SMTP:
        conn = smtplib.SMTP(self._host, self._port, timeout=self._timeout)
        if self._use_tls:
            conn.starttls()
        if self._username:
            conn.login(self._username, self._password)
        return conn

    def _disconnect(self) -> None:
        with self._lock:
            if self._conn is None:
                return
            try:
                self._conn.quit()
            except smtplib.SMTPException:
                logger.warning("SMTP QUIT failed; dropping connection")
            finally:
                self._conn = None

    def _deliver(self, to_email: str, message: MIMEMultipart) -> None:
        with self._lock:
            try:
                if self._conn is None:
                    self._conn = self._new_connection()
                try:
                    self._conn.send_message(message)
                except smtplib.SMTPServerDisconnected:
                    # Relays close idle connections; reconnect once and retry.
                    logger.info("SMTP connection dropped, reconnecting")
                    self._conn = None
                    self._conn = self._new_connection()
                    self._conn.send_message(message)
            except OSError:
                # Broken pipe, timeout or a failed retry: the socket is
                # unusable, so the next send opens a fresh one.
                self._conn = None
                raise

    def _build_message(self, to_email: str, subject: str, html_body: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self._sender
        msg["To"] = to_email
        msg.attach(MIMEText(html_body, "html", "utf-8"))
        return msg


class ConsoleNotifier:
    """Development notifier: logs the message instead of sending it."""

    async def open(self) -> None:
        logger.warning("SMTP is not configured -- emails will be logged, not sent")

    async def close(self) -> None:
        return None

    async def send(self, to_email: str, subject: str, html_body: str) -> bool:
        logger.info("[EMAIL] to=%s subject=%r\n%s", to_email, subject, html_body)
        return True


def build_notifier(settings: Settings) -> Notifier:
    """Pick the transport for the current configuration."""
    if settings.smtp_enabled:
        return SmtpNotifier(settings)
    return ConsoleNotifier()
