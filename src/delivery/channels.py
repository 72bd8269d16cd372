"""Channel senders: email, SMS, Slack and push delivery over HTTP.

In-app delivery has no sender: the notification record itself is the in-app
copy and is written before any external send.
"""

from __future__ import annotations

import abc
from typing import Any, ClassVar

import aiohttp
import structlog

from src.core.config import EmailConfig, PushConfig, SlackConfig, SMSConfig
from src.core.types import ChannelKind, Priority, Recipient
from src.delivery.exceptions import ChannelSendError

logger = structlog.get_logger(__name__)

# Slack attachment colours keyed by priority.
_SLACK_COLORS: dict[Priority, str] = {
    Priority.LOW: "#95A5A6",       # grey
    Priority.MEDIUM: "#2ECC71",    # green
    Priority.HIGH: "#F39C12",      # orange
    Priority.CRITICAL: "#E74C3C",  # red
}


class ChannelSender(abc.ABC):
    """Base class for external delivery channels.

    ``send`` returns True on success. A False return or any raised exception
    is treated as a failed attempt by the dispatcher.
    """

    channel: ClassVar[ChannelKind]

    @abc.abstractmethod
    async def send(
        self,
        recipient: Recipient,
        title: str,
        message: str,
        priority: Priority,
    ) -> bool:
        """Deliver one notification to one recipient."""

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""


class HttpChannelSender(ChannelSender):
    """Shared aiohttp session handling for JSON-over-HTTP gateways."""

    _ok_statuses: ClassVar[tuple[int, ...]] = (200, 201, 202, 204)

    def __init__(self) -> None:
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    def _address(self, recipient: Recipient) -> str:
        address = recipient.address_for(self.channel)
        if address is None:
            raise ChannelSendError(
                f"no {self.channel} address for user {recipient.user_id}"
            )
        return address

    async def _post(
        self,
        url: str,
        payload: dict[str, Any],
        headers: dict[str, str] | None = None,
    ) -> bool:
        session = self._get_session()
        async with session.post(url, json=payload, headers=headers) as resp:
            if resp.status in self._ok_statuses:
                return True
            body = await resp.text()
            logger.warning(
                "channel_http_error",
                channel=str(self.channel),
                status=resp.status,
                body=body[:200],
            )
            raise ChannelSendError(f"HTTP {resp.status}: {body[:200]}")

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class EmailSender(HttpChannelSender):
    """Delivers via a transactional email HTTP API."""

    channel = ChannelKind.EMAIL

    def __init__(self, config: EmailConfig) -> None:
        super().__init__()
        self._api_url = config.api_url
        self._api_key = config.api_key.get_secret_value()
        self._sender = config.sender

    async def send(
        self,
        recipient: Recipient,
        title: str,
        message: str,
        priority: Priority,
    ) -> bool:
        payload = {
            "from": self._sender,
            "to": [self._address(recipient)],
            "subject": f"[{priority.name}] {title}",
            "text": message,
        }
        headers = {"Authorization": f"Bearer {self._api_key}"}
        return await self._post(self._api_url, payload, headers)


class SMSSender(HttpChannelSender):
    """Delivers via an SMS gateway. Messages are kept to one segment."""

    channel = ChannelKind.SMS

    MAX_LENGTH = 160

    def __init__(self, config: SMSConfig) -> None:
        super().__init__()
        self._gateway_url = config.gateway_url
        self._auth_token = config.auth_token.get_secret_value()
        self._from_number = config.from_number

    async def send(
        self,
        recipient: Recipient,
        title: str,
        message: str,
        priority: Priority,
    ) -> bool:
        text = f"[{priority.name}] {title}: {message}"
        if len(text) > self.MAX_LENGTH:
            text = text[: self.MAX_LENGTH - 1] + "…"
        payload = {
            "from": self._from_number,
            "to": self._address(recipient),
            "body": text,
        }
        headers = {"Authorization": f"Bearer {self._auth_token}"}
        return await self._post(self._gateway_url, payload, headers)


class SlackSender(HttpChannelSender):
    """Delivers via a Slack incoming webhook with colour-coded attachments."""

    channel = ChannelKind.SLACK

    def __init__(self, config: SlackConfig) -> None:
        super().__init__()
        self._webhook_url = config.webhook_url.get_secret_value()

    async def send(
        self,
        recipient: Recipient,
        title: str,
        message: str,
        priority: Priority,
    ) -> bool:
        payload: dict[str, Any] = {
            "channel": self._address(recipient),
            "text": f"*[{priority.name}] {title}*",
            "attachments": [
                {
                    "color": _SLACK_COLORS.get(priority, "#95A5A6"),
                    "text": message,
                }
            ],
        }
        return await self._post(self._webhook_url, payload)


class PushSender(HttpChannelSender):
    """Delivers mobile push notifications via a push gateway."""

    channel = ChannelKind.PUSH

    def __init__(self, config: PushConfig) -> None:
        super().__init__()
        self._gateway_url = config.gateway_url
        self._api_key = config.api_key.get_secret_value()

    async def send(
        self,
        recipient: Recipient,
        title: str,
        message: str,
        priority: Priority,
    ) -> bool:
        payload = {
            "to": self._address(recipient),
            "title": title,
            "body": message,
            "priority": "high" if priority >= Priority.HIGH else "normal",
        }
        headers = {"Authorization": f"key={self._api_key}"}
        return await self._post(self._gateway_url, payload, headers)
