# src/taskmate/notify/gateway.py

"""
Notification gateways and the dispatch wrapper.

- TwilioSmsGateway: Twilio Messages REST API over httpx.
- ConsoleGateway: development transport (stdout + log), always succeeds.
- deliver(): bounded single attempt; every outcome comes back as a SendResult.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime

import httpx

from ..core.errors import ConfigurationError
from ..core.ports import NotificationGateway, SendResult

logger = logging.getLogger(__name__)


class TwilioSmsGateway:
    """Send SMS through Twilio (POST /2010-04-01/Accounts/{sid}/Messages.json)."""

    def __init__(
        self,
        *,
        account_sid: str,
        auth_token: str,
        from_number: str,
        base_url: str = "https://api.twilio.com",
        timeout_seconds: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        missing = [
            name
            for name, value in (
                ("account_sid", account_sid),
                ("auth_token", auth_token),
                ("from_number", from_number),
            )
            if not value
        ]
        if missing:
            raise ConfigurationError(f"Twilio gateway is missing: {', '.join(missing)}")

        self._account_sid = account_sid
        self._from_number = from_number
        self._url = f"{base_url.rstrip('/')}/2010-04-01/Accounts/{account_sid}/Messages.json"
        self._client = client or httpx.AsyncClient(
            auth=(account_sid, auth_token),
            timeout=httpx.Timeout(timeout_seconds, connect=5.0),
        )

    async def send(self, address: str, text: str) -> SendResult:
        try:
            resp = await self._client.post(
                self._url,
                data={"To": address, "From": self._from_number, "Body": text},
            )
        except httpx.HTTPError as e:
            logger.warning("SMS transport error to=%s: %r", address, e)
            return SendResult.failed(f"transport error: {e.__class__.__name__}")

        # Redirects are not followed, so only a 2xx means Twilio accepted the message.
        if not resp.is_success:
            detail = ""
            try:
                detail = str(resp.json().get("message") or "")
            except ValueError:
                detail = resp.text[:200]
            logger.warning("SMS rejected to=%s status=%s %s", address, resp.status_code, detail)
            return SendResult.failed(f"http {resp.status_code}: {detail}".strip())

        try:
            sid = resp.json().get("sid")
        except ValueError:
            sid = None
        logger.info("SMS sent to=%s sid=%s", address, sid)
        return SendResult.ok(message_id=sid)

    async def aclose(self) -> None:
        await self._client.aclose()


class ConsoleGateway:
    """Print outgoing messages instead of sending them."""

    def __init__(self) -> None:
        self._counter = 0

    async def send(self, address: str, text: str) -> SendResult:
        self._counter += 1
        ts = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        print(f"[{ts}] [SMS -> {address}]\n{text}\n", flush=True)
        logger.info("Console message #%s to=%s", self._counter, address)
        return SendResult.ok(message_id=f"console-{self._counter}")

    async def aclose(self) -> None:
        return


async def deliver(
    gateway: NotificationGateway,
    address: str,
    text: str,
    *,
    timeout_seconds: float = 15.0,
) -> SendResult:
    """
    Single bounded attempt through `gateway`.

    Never raises: a timeout or any gateway exception becomes a failed
    SendResult, so the engine always branches on a value.
    """
    try:
        result = await asyncio.wait_for(gateway.send(address, text), timeout=timeout_seconds)
    except asyncio.TimeoutError:
        logger.warning("Send timed out after %.1fs to=%s", timeout_seconds, address)
        return SendResult.failed("timeout")
    except Exception as e:
        logger.exception("Gateway crashed sending to=%s", address)
        return SendResult.failed(f"gateway error: {e!r}")

    if not isinstance(result, SendResult):
        return SendResult.failed(f"gateway returned {type(result).__name__}")
    return result


def build_gateway(settings) -> TwilioSmsGateway | ConsoleGateway:
    """Create the configured gateway; fails fast on unusable configuration."""
    kind = str(getattr(settings, "gateway", "twilio") or "twilio").lower()

    if kind == "console":
        logger.info("Using console gateway (messages are printed, not sent).")
        return ConsoleGateway()

    if kind == "twilio":
        gw = TwilioSmsGateway(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from_number,
            base_url=settings.twilio_base_url,
            timeout_seconds=settings.send_timeout_seconds,
        )
        logger.info("Using Twilio gateway from=%s", settings.twilio_from_number)
        return gw

    raise ConfigurationError(f"Unknown gateway: {kind!r} (expected 'twilio' or 'console')")
