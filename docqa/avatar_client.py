"""Client for the avatar streaming provider's text task endpoint."""
from typing import Dict, Optional
import httpx
import structlog

from docqa import config

logger = structlog.get_logger()

# Rough speech rate used to tell the caller how long the avatar will talk
SECONDS_PER_WORD = 0.5


def estimate_speaking_duration(text: str) -> int:
    """Estimate speaking time in whole seconds."""
    words = len(text.split())
    return round(words * SECONDS_PER_WORD)


class AvatarClient:
    """Async client that makes a streaming avatar speak text."""

    def __init__(
        self,
        server_url: str = None,
        api_key: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the avatar client.

        Args:
            server_url: Provider base URL (defaults to config.HEYGEN_SERVER_URL)
            api_key: Provider API key (defaults to config.HEYGEN_APIKEY)
            timeout: Request timeout in seconds (defaults to config.AVATAR_TIMEOUT)
            transport: httpx transport override (default: network)
        """
        self.server_url = (server_url or config.HEYGEN_SERVER_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.HEYGEN_APIKEY
        self.timeout = timeout or config.AVATAR_TIMEOUT
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def send_text(self, session_id: str, text: str) -> Optional[Dict]:
        """Ask a running avatar session to speak text.

        Args:
            session_id: Streaming session identifier
            text: Text for the avatar to speak

        Returns:
            The provider's 'data' payload

        Raises:
            httpx.HTTPError: On API errors or timeouts
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            logger.info(
                "avatar_text_request",
                session_id=session_id,
                text_length=len(text),
            )

            response = await client.post(
                f"{self.server_url}/v1/streaming.task",
                json={"session_id": session_id, "text": text},
                headers={
                    "Content-Type": "application/json",
                    "X-Api-Key": self.api_key,
                },
            )
            response.raise_for_status()

            return response.json().get("data")
