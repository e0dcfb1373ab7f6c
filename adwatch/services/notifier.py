"""Notification gateway: delivers new ads to subscribers."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, Union, runtime_checkable
from zoneinfo import ZoneInfo

import httpx
import structlog

from adwatch.config import settings
from adwatch.core.exceptions import NotificationError, RecipientUnavailable
from adwatch.models.ad import Ad
from adwatch.scrapers.base import NormalizedAd

logger = structlog.get_logger(__name__)


DISPLAY_TIMEZONE = ZoneInfo("Europe/Minsk")

# Persisted rows and freshly extracted ads share the fields a message needs.
AdLike = Union[Ad, NormalizedAd]


@runtime_checkable
class Notifier(Protocol):
    """Delivers one ad to one recipient."""

    async def notify(self, chat_id: int, ad: AdLike) -> None:
        """Send an ad.

        Args:
            chat_id: Recipient chat
            ad: The row the polling cycle has just stored for the query

        Raises:
            RecipientUnavailable: The recipient revoked access
            NotificationError: Delivery failed for another reason
        """
        ...


def format_published_at(published_at: Optional[datetime]) -> Optional[str]:
    """Render a publication time as dd.mm.yyyy, HH:MM in Minsk time."""
    if published_at is None:
        return None
    if published_at.tzinfo is None:
        published_at = published_at.replace(tzinfo=timezone.utc)
    return published_at.astimezone(DISPLAY_TIMEZONE).strftime("%d.%m.%Y, %H:%M")


def format_ad_message(ad: AdLike) -> str:
    """Build the plain-text notification body for an ad."""
    lines = [ad.title, f"💰 {ad.price or 'Цена не указана'}"]

    published = format_published_at(ad.published_at)
    if published:
        lines.append(f"🕐 {published}")

    place = ", ".join(part for part in (ad.location, ad.address) if part)
    if place:
        lines.append(f"📍 {place}")

    lines.append(f"🔗 {ad.ad_url}")
    return "\n".join(lines)


class TelegramNotifier:
    """Notifier backed by the Telegram Bot API.

    The message text is sent first; the ad photo follows as a separate,
    best-effort message.

    Args:
        token: Bot token
        api_url: Bot API base URL
        timeout: Request timeout in seconds
        transport: Optional httpx transport (tests inject httpx.MockTransport)
    """

    def __init__(
        self,
        token: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.token = token if token is not None else settings.TELEGRAM_BOT_TOKEN
        self.api_url = (api_url or settings.TELEGRAM_API_URL).rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self.logger = logger.bind(service="telegram_notifier")

    async def notify(self, chat_id: int, ad: AdLike) -> None:
        await self._call(
            "sendMessage",
            chat_id,
            {"chat_id": chat_id, "text": format_ad_message(ad), "disable_web_page_preview": True},
        )

        if ad.image_url:
            try:
                await self._call("sendPhoto", chat_id, {"chat_id": chat_id, "photo": ad.image_url})
            except NotificationError as e:
                self.logger.warning(
                    "photo_send_failed",
                    chat_id=chat_id,
                    external_id=ad.external_id,
                    error=str(e),
                )

        self.logger.info("ad_notified", chat_id=chat_id, external_id=ad.external_id)

    async def _call(self, method: str, chat_id: int, payload: Dict[str, Any]) -> Dict[str, Any]:
        url = f"{self.api_url}/bot{self.token}/{method}"

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(url, json=payload)
        except httpx.HTTPError as e:
            raise NotificationError(f"{method} failed: {e}") from e

        if response.status_code == 403:
            raise RecipientUnavailable(chat_id, self._description(response) or "bot was blocked")

        if response.status_code >= 400:
            raise NotificationError(
                f"{method} returned {response.status_code}: {self._description(response)}"
            )

        return response.json()

    @staticmethod
    def _description(response: httpx.Response) -> str:
        try:
            return response.json().get("description", "")
        except ValueError:
            return response.text[:200]


class LogNotifier:
    """Notifier that only logs; used when no bot token is configured."""

    def __init__(self):
        self.logger = logger.bind(service="log_notifier")

    async def notify(self, chat_id: int, ad: AdLike) -> None:
        self.logger.info(
            "ad_notification_logged",
            chat_id=chat_id,
            external_id=ad.external_id,
            title=ad.title,
            ad_url=ad.ad_url,
        )


def build_notifier() -> Notifier:
    """Pick the notifier for the current configuration."""
    if settings.TELEGRAM_BOT_TOKEN:
        return TelegramNotifier()
    logger.warning("telegram_token_missing", message="TELEGRAM_BOT_TOKEN not set, notifications are only logged")
    return LogNotifier()
