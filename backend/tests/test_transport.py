"""
Unit tests for the SMTP transport factory.
aiosmtplib is mocked; no network connections are made.
"""

from email.message import EmailMessage
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from massmail.models.email import SMTPConfig
from massmail.services.transport import (
    SMTPTransport,
    TransportOptions,
    build_transport,
    transport_options,
)


def _config(**overrides) -> SMTPConfig:
    data = {
        "serverAddress": "smtp.example.com",
        "port": 587,
        "authMethod": "None",
        "sslMethod": "None",
        "emailAddress": "sender@example.com",
    }
    data.update(overrides)
    return SMTPConfig.model_validate(data)


class TestTransportOptions:

    def test_ssl_means_implicit_tls(self):
        options = transport_options(_config(sslMethod="SSL", port=465))

        assert options.secure is True
        assert options.require_tls is False
        assert options.start_tls is False

    def test_tls_means_required_starttls(self):
        options = transport_options(_config(sslMethod="TLS"))

        assert options.secure is False
        assert options.require_tls is True
        assert options.start_tls is True

    def test_no_ssl_is_opportunistic(self):
        options = transport_options(_config())

        assert options.secure is False
        assert options.require_tls is False
        assert options.start_tls is None

    def test_smtp_auth_sets_credentials(self):
        options = transport_options(_config(
            authMethod="SMTP-AUTH", authAccount="mailer", authPassword="s3cret",
        ))

        assert options.auth == ("mailer", "s3cret")
        kwargs = options.connection_kwargs()
        assert kwargs["username"] == "mailer"
        assert kwargs["password"] == "s3cret"

    def test_no_auth_leaves_transport_unauthenticated(self):
        """Credentials stored alongside authMethod=None are ignored."""
        options = transport_options(_config(authAccount="mailer", authPassword="s3cret"))

        assert options.auth is None
        assert "username" not in options.connection_kwargs()

    def test_host_and_port_are_copied(self):
        kwargs = transport_options(_config(port=2525)).connection_kwargs()

        assert kwargs["hostname"] == "smtp.example.com"
        assert kwargs["port"] == 2525

    def test_build_transport_wraps_options(self):
        transport = build_transport(_config(sslMethod="SSL"))

        assert isinstance(transport, SMTPTransport)
        assert transport.options.secure is True


class TestSMTPTransport:

    @pytest.mark.asyncio
    async def test_verify_connects_and_quits(self):
        options = TransportOptions(host="smtp.example.com", port=465, secure=True, require_tls=False)
        smtp = MagicMock()
        smtp.connect = AsyncMock()
        smtp.noop = AsyncMock(return_value=(250, "OK"))
        smtp.quit = AsyncMock()

        with patch("massmail.services.transport.aiosmtplib.SMTP", return_value=smtp) as smtp_cls:
            await SMTPTransport(options).verify()

        smtp_cls.assert_called_once_with(
            hostname="smtp.example.com", port=465, use_tls=True, start_tls=False,
        )
        smtp.connect.assert_awaited_once()
        smtp.quit.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_verify_propagates_connection_failure(self):
        options = TransportOptions(host="smtp.example.com", port=25, secure=False, require_tls=False)
        smtp = MagicMock()
        smtp.connect = AsyncMock(side_effect=OSError("connection refused"))

        with patch("massmail.services.transport.aiosmtplib.SMTP", return_value=smtp):
            with pytest.raises(OSError):
                await SMTPTransport(options).verify()

    @pytest.mark.asyncio
    async def test_send_mail_passes_connection_settings(self):
        options = TransportOptions(
            host="smtp.example.com", port=587, secure=False, require_tls=True,
            auth=("mailer", "s3cret"),
        )
        message = EmailMessage()
        message["To"] = "to@example.com"

        with patch("massmail.services.transport.aiosmtplib.send", new_callable=AsyncMock) as send:
            await SMTPTransport(options).send_mail(message)

        send.assert_awaited_once_with(
            message,
            hostname="smtp.example.com",
            port=587,
            use_tls=False,
            start_tls=True,
            username="mailer",
            password="s3cret",
        )
