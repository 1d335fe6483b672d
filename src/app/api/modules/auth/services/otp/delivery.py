import logging
from typing import Protocol

import httpx

from app.settings import Config

logger = logging.getLogger(__name__)


class ChallengeDelivery(Protocol):
    async def deliver(self, destination: str, code: str) -> None: ...


def mask_destination(destination: str) -> str:
    name, sep, domain = destination.partition("@")
    if not sep:
        return destination[:2] + "***"
    return f"{name[:1]}***@{domain}"


class LoggingChallengeDelivery:
    """Fallback channel for local runs: records that a code went out, not the code."""

    async def deliver(self, destination: str, code: str) -> None:
        logger.info("OTP challenge issued for %s", mask_destination(destination))


class WebhookChallengeDelivery:
    """Hands the code to an out-of-band notifier (mailer / SMS gateway)."""

    def __init__(self, client: httpx.AsyncClient, config: Config):
        self._client = client
        self._url = config.delivery.webhook_url or ""
        self._timeout = config.delivery.timeout_seconds

    async def deliver(self, destination: str, code: str) -> None:
        try:
            response = await self._client.post(
                self._url,
                json={"destination": destination, "code": code, "channel": "email"},
                timeout=self._timeout,
            )
            response.raise_for_status()
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                "OTP delivery failed",
                extra={"destination": mask_destination(destination)},
            )
            logger.debug("OTP delivery error: %s", exc)


__all__ = (
    "ChallengeDelivery",
    "LoggingChallengeDelivery",
    "WebhookChallengeDelivery",
    "mask_destination",
)
