"""Inbox lookups backed by Mailosaur."""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Optional

from mailosaur import MailosaurClient
from mailosaur.models import MailosaurException, SearchCriteria

from intentest.error_handling import ToolError

logger = logging.getLogger(__name__)

DEFAULT_WAIT_MS = 10_000


@dataclass
class ReceivedEmail:
    subject: str
    html: str
    text: str


class Mailbox:
    """Fetches the latest message sent to an address on one Mailosaur server."""

    def __init__(
        self,
        api_key: str,
        server_id: str,
        wait_ms: int = DEFAULT_WAIT_MS,
        client: Optional[Any] = None,
    ) -> None:
        if not api_key or not server_id:
            raise ToolError(
                "Mailosaur api key and server id are required to check email",
                tool="check_email",
            )
        self.server_id = server_id
        self.wait_ms = wait_ms
        self.client = client or MailosaurClient(api_key)

    async def latest_email(self, address: str) -> ReceivedEmail:
        criteria = SearchCriteria()
        criteria.sent_to = address
        try:
            message = await asyncio.to_thread(
                self.client.messages.get, self.server_id, criteria, timeout=self.wait_ms
            )
        except MailosaurException as exc:
            raise ToolError(
                f"Failed to fetch email for {address}: {exc}", tool="check_email", cause=exc
            ) from exc

        logger.debug("Fetched email", extra={"address": address, "subject": message.subject})
        return ReceivedEmail(
            subject=message.subject or "",
            html=(message.html.body if message.html else None) or "",
            text=(message.text.body if message.text else None) or "",
        )
