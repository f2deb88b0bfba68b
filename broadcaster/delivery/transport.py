"""
Email transport client.

Docs: https://resend.com/docs/api-reference/emails/send-email
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol

import httpx

from ..errors import TransportError
from ..logging_config import delivery_logger


@dataclass
class OutboundEmail:
    sender: str
    to: List[str]
    subject: str
    html: str
    tags: Dict[str, str] = field(default_factory=dict)

    def to_payload(self) -> dict:
        return {
            "from": self.sender,
            "to": list(self.to),
            "subject": self.subject,
            "html": self.html,
            "tags": [{"name": k, "value": v} for k, v in self.tags.items()],
        }


class EmailTransport(Protocol):
    async def send(self, message: OutboundEmail) -> str:
        """Deliver ``message`` and return the provider message id.

        Raises TransportError on any rejection.
        """
        ...


class ResendTransport:
    """Client for the Resend HTTP API."""

    def __init__(
        self,
        api_key: Optional[str],
        api_url: str = "https://api.resend.com",
        timeout: float = 30.0,
    ):
        self.api_key = api_key
        self.api_url = api_url.rstrip("/")
        self.timeout = timeout

    def _check_key(self):
        if not self.api_key:
            raise TransportError("RESEND_API_KEY is not configured", 401)

    async def send(self, message: OutboundEmail) -> str:
        self._check_key()

        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.api_url}/emails",
                    headers=headers,
                    json=message.to_payload(),
                )
        except httpx.TimeoutException as e:
            raise TransportError(f"Transport timed out: {e}") from e
        except httpx.HTTPError as e:
            raise TransportError(f"Transport unreachable: {e}") from e

        if response.status_code >= 400:
            reason = _error_message(response)
            delivery_logger.warning(
                "Transport rejected message",
                status_code=response.status_code,
                reason=reason,
                recipients=len(message.to),
            )
            raise TransportError(reason, response.status_code)

        try:
            data = response.json()
        except ValueError:
            raise TransportError("Transport returned a non-JSON response", response.status_code)

        message_id = data.get("id") if isinstance(data, dict) else None
        if not message_id:
            raise TransportError("Transport response did not include a message id", response.status_code)

        delivery_logger.info("Transport accepted message", message_id=message_id, recipients=len(message.to))
        return message_id


def _error_message(response: httpx.Response) -> str:
    try:
        data = response.json()
    except ValueError:
        return response.text or f"HTTP {response.status_code}"
    if isinstance(data, dict):
        return str(data.get("message") or data.get("error") or data)
    return str(data)
