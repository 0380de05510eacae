"""
Push notification dispatch with provider abstraction.

Supports FCM (HTTP legacy API) and a log-only provider for development.
Provider is selected via configuration.

Delivery is best effort: callers send after their own data change has been
committed, and a failed push only lowers ``PushResult.sent``.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum

import httpx
import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from afterhours.config import get_settings
from afterhours.db.models import PushToken

logger = structlog.get_logger()


class DeliveryStatus(str, Enum):
    SENT = "sent"
    INVALID_TOKEN = "invalid_token"
    FAILED = "failed"


@dataclass
class PushResult:
    sent: int = 0
    invalid_tokens: list[str] = field(default_factory=list)


class BasePushProvider(ABC):
    """Abstract base class for push delivery providers."""

    @abstractmethod
    async def send(
        self,
        token: str,
        title: str,
        body: str,
        data: dict[str, str],
    ) -> DeliveryStatus:
        """Deliver one notification to one device token."""
        ...


class FCMProvider(BasePushProvider):
    """Send notifications via the FCM HTTP API."""

    def __init__(self, server_key: str, endpoint: str, timeout: float = 10.0) -> None:
        self.server_key = server_key
        self.endpoint = endpoint
        self.timeout = timeout

    async def send(
        self,
        token: str,
        title: str,
        body: str,
        data: dict[str, str],
    ) -> DeliveryStatus:
        payload = {
            "to": token,
            "notification": {"title": title, "body": body, "sound": "default", "badge": 1},
            "data": data,
            "content_available": True,
            "priority": "high",
        }
        try:
            async with httpx.AsyncClient() as client:
                response = await client.post(
                    self.endpoint,
                    headers={
                        "Authorization": f"key={self.server_key}",
                        "Content-Type": "application/json",
                    },
                    json=payload,
                    timeout=self.timeout,
                )
                response.raise_for_status()
                result = response.json()
        except Exception:
            logger.exception("push_send_failed", provider="fcm")
            return DeliveryStatus.FAILED

        if result.get("failure"):
            errors = [r.get("error") for r in result.get("results") or []]
            if "NotRegistered" in errors or "InvalidRegistration" in errors:
                return DeliveryStatus.INVALID_TOKEN
            logger.warning("push_rejected", provider="fcm", errors=errors)
            return DeliveryStatus.FAILED
        return DeliveryStatus.SENT if result.get("success") == 1 else DeliveryStatus.FAILED


class LogProvider(BasePushProvider):
    """Development provider: logs instead of delivering."""

    async def send(
        self,
        token: str,
        title: str,
        body: str,
        data: dict[str, str],
    ) -> DeliveryStatus:
        logger.info("push_logged", token=token[:12], title=title, body=body, data=data)
        return DeliveryStatus.SENT


def _create_provider() -> BasePushProvider:
    """Create push provider based on configuration."""
    settings = get_settings()
    provider_name = settings.push_provider.lower()

    if provider_name == "fcm":
        return FCMProvider(
            server_key=settings.fcm_server_key,
            endpoint=settings.fcm_endpoint,
            timeout=settings.push_timeout_seconds,
        )
    if provider_name == "log":
        return LogProvider()
    msg = f"Unsupported push provider: {provider_name}"
    raise ValueError(msg)


class PushService:
    """Fan a notification out to many device tokens."""

    def __init__(self, provider: BasePushProvider | None = None) -> None:
        self.provider = provider or _create_provider()

    async def send(
        self,
        recipient_tokens: list[str],
        title: str,
        body: str,
        data: dict[str, str] | None = None,
    ) -> PushResult:
        """Send to every token. Never raises; failures reduce ``sent``."""
        if not recipient_tokens:
            return PushResult()

        statuses = await asyncio.gather(
            *(self.provider.send(token, title, body, data or {}) for token in recipient_tokens),
            return_exceptions=True,
        )

        result = PushResult()
        for token, status in zip(recipient_tokens, statuses, strict=True):
            if isinstance(status, BaseException):
                logger.warning("push_send_error", error=str(status))
            elif status is DeliveryStatus.SENT:
                result.sent += 1
            elif status is DeliveryStatus.INVALID_TOKEN:
                result.invalid_tokens.append(token)

        logger.info(
            "push_dispatched",
            total=len(recipient_tokens),
            sent=result.sent,
            invalid=len(result.invalid_tokens),
        )
        return result


_push_service: PushService | None = None


def get_push_service() -> PushService:
    """Get the process-wide push service."""
    global _push_service  # noqa: PLW0603
    if _push_service is None:
        _push_service = PushService()
    return _push_service


def set_push_service(service: PushService | None) -> None:
    """Replace the process-wide push service (tests, workers)."""
    global _push_service  # noqa: PLW0603
    _push_service = service


async def notify_users(
    db: AsyncSession,
    user_ids: list[str],
    title: str,
    body: str,
    data: dict[str, str] | None = None,
    push: PushService | None = None,
) -> PushResult:
    """Push to all active devices of ``user_ids`` and deactivate invalid tokens.

    Must be called after the triggering change is committed: it commits the
    token deactivation on the same session. Token work runs in a SAVEPOINT so
    a failure here leaves the caller's loaded objects untouched.
    """
    try:
        async with db.begin_nested():
            result = await db.execute(
                select(PushToken.token).where(
                    PushToken.user_id.in_(user_ids),
                    PushToken.is_active.is_(True),
                )
            )
            tokens = [row[0] for row in result]
            if not tokens:
                return PushResult()

            outcome = await (push or get_push_service()).send(tokens, title, body, data)

            if outcome.invalid_tokens:
                await db.execute(
                    update(PushToken)
                    .where(PushToken.token.in_(outcome.invalid_tokens))
                    .values(is_active=False, updated_at=datetime.now(timezone.utc))
                    .execution_options(synchronize_session=False)
                )
        await db.commit()
        return outcome
    except Exception:
        logger.exception("push_notify_failed", users=len(user_ids))
        return PushResult()
