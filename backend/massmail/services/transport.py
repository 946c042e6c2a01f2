"""
SMTP transport built from an organization's stored SMTP configuration.

The transport is a thin, awaitable wrapper over aiosmtplib:

  verify()           - open a session (logging in when credentials are
                       configured) and close it again
  send_mail(message) - deliver one EmailMessage over its own session

Each send opens its own session, so the number of live connections equals
the number of sends in flight.
"""

import logging
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Tuple

import aiosmtplib

from massmail.models.email import AuthMethod, SMTPConfig, SSLMethod

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TransportOptions:
    host: str
    port: int
    secure: bool          # implicit TLS on connect
    require_tls: bool     # STARTTLS upgrade is mandatory
    auth: Optional[Tuple[str, str]] = None

    @property
    def start_tls(self) -> Optional[bool]:
        """
        aiosmtplib start_tls flag.

        True forces STARTTLS, False disables it (already encrypted), None
        upgrades only when the server advertises it.
        """
        if self.require_tls:
            return True
        if self.secure:
            return False
        return None

    def connection_kwargs(self) -> dict:
        kwargs = {
            "hostname": self.host,
            "port": self.port,
            "use_tls": self.secure,
            "start_tls": self.start_tls,
        }
        if self.auth:
            kwargs["username"], kwargs["password"] = self.auth
        return kwargs


class SMTPTransport:
    def __init__(self, options: TransportOptions):
        self.options = options

    async def verify(self) -> None:
        """Confirm the server is reachable and accepts our credentials."""
        smtp = aiosmtplib.SMTP(**self.options.connection_kwargs())
        await smtp.connect()
        try:
            await smtp.noop()
        finally:
            await smtp.quit()

    async def send_mail(self, message: EmailMessage) -> None:
        await aiosmtplib.send(message, **self.options.connection_kwargs())


def transport_options(config: SMTPConfig) -> TransportOptions:
    """Translate a stored SMTP configuration into connection options."""
    auth = None
    if config.auth_method == AuthMethod.SMTP_AUTH:
        auth = (config.auth_account or "", config.auth_password or "")

    return TransportOptions(
        host=config.server_address,
        port=config.port,
        secure=config.ssl_method == SSLMethod.SSL,
        require_tls=config.ssl_method == SSLMethod.TLS,
        auth=auth,
    )


def build_transport(config: SMTPConfig) -> SMTPTransport:
    options = transport_options(config)
    logger.info(
        f"SMTP transport for {options.host}:{options.port} "
        f"(secure={options.secure}, require_tls={options.require_tls}, "
        f"auth={'yes' if options.auth else 'no'})"
    )
    return SMTPTransport(options)
