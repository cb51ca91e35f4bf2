"""HTTP gateway channel sender — implements ChannelSender for sms / email / push."""

from __future__ import annotations

import logging

import httpx

from queue_dispatch.application.ports.channel_sender import ChannelSender
from queue_dispatch.domain.entities.notification import SendReceipt
from queue_dispatch.domain.value_objects.enums import Channel, NotificationPriority

logger = logging.getLogger(__name__)


class HttpChannelSender(ChannelSender):
    """POSTs one JSON message per call to a delivery gateway.

    A non-2xx answer is a failed receipt; transport errors propagate so the
    caller's timeout / error wrapping applies.
    """

    def __init__(
        self,
        channel: Channel,
        url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._channel = channel
        self._url = url
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    @property
    def channel(self) -> Channel:
        return self._channel

    async def send(self, recipient: str, message: str, priority: NotificationPriority) -> SendReceipt:
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else {}
        async with httpx.AsyncClient(transport=self._transport, timeout=self._timeout) as client:
            response = await client.post(
                self._url,
                json={
                    "channel": self._channel.value,
                    "to": recipient,
                    "message": message,
                    "priority": priority.value,
                },
                headers=headers,
            )

        if response.is_error:
            logger.warning(
                "%s gateway rejected message (HTTP %d)", self._channel.value, response.status_code
            )
            return SendReceipt(success=False, error=f"Gateway returned HTTP {response.status_code}")

        body = response.json() if response.content else {}
        message_id = body.get("message_id") or body.get("id")
        logger.debug("%s message accepted: %s", self._channel.value, message_id)
        return SendReceipt(success=True, message_id=str(message_id) if message_id is not None else None)
