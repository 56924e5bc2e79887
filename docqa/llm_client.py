"""OpenAI-compatible LLM client wrapper with error handling."""
import httpx
from typing import List, Dict, Optional, Union
import structlog

from docqa import config

logger = structlog.get_logger()


class LLMClient:
    """Async client for an OpenAI-compatible chat and embeddings API."""

    def __init__(
        self,
        base_url: str = None,
        api_key: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize the LLM client.

        Args:
            base_url: API base URL (defaults to config.OPENAI_BASE_URL)
            api_key: API key (defaults to config.OPENAI_API_KEY)
            timeout: Request timeout in seconds (defaults to config.LLM_TIMEOUT)
            transport: httpx transport override (default: network)
        """
        self.base_url = (base_url or config.OPENAI_BASE_URL).rstrip("/")
        self.api_key = api_key if api_key is not None else config.OPENAI_API_KEY
        self.timeout = timeout or config.LLM_TIMEOUT
        self.transport = transport

    @property
    def configured(self) -> bool:
        """Whether an API key is available."""
        return bool(self.api_key)

    def _headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def chat(
        self,
        messages: List[Dict[str, str]],
        model: str = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict:
        """Send a chat completion request.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to config.CHAT_MODEL)
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Maximum completion tokens

        Returns:
            Response dict with 'choices' containing 'message'

        Raises:
            httpx.HTTPError: On API errors or timeouts
        """
        model = model or config.CHAT_MODEL

        payload = {
            "model": model,
            "messages": messages,
        }

        if temperature is not None:
            payload["temperature"] = temperature
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                logger.info(
                    "llm_chat_request",
                    model=model,
                    message_count=len(messages),
                )

                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                    headers=self._headers(),
                )
                response.raise_for_status()

                data = response.json()

                logger.info(
                    "llm_chat_response",
                    model=model,
                    response_length=len(self.message_content(data)),
                )

                return data

        except httpx.ConnectError as e:
            logger.error("llm_connection_error", error=str(e), base_url=self.base_url)
            raise
        except httpx.HTTPError as e:
            logger.error(
                "llm_http_error",
                error=str(e),
                status_code=getattr(getattr(e, "response", None), "status_code", None),
            )
            raise

    async def embeddings(
        self,
        texts: Union[str, List[str]],
        model: str = None,
        timeout: Optional[float] = None,
    ) -> Dict:
        """Generate embeddings for one or more texts.

        Args:
            texts: Text or list of texts to embed
            model: Model to use (defaults to config.EMBEDDING_MODEL)
            timeout: Request timeout override in seconds

        Returns:
            Response dict with 'data' list of {'index', 'embedding'}

        Raises:
            httpx.HTTPError: On API errors or timeouts
        """
        model = model or config.EMBEDDING_MODEL

        payload = {
            "model": model,
            "input": texts,
        }

        try:
            async with httpx.AsyncClient(timeout=timeout or self.timeout, transport=self.transport) as client:
                logger.debug(
                    "llm_embedding_request",
                    model=model,
                    input_count=1 if isinstance(texts, str) else len(texts),
                )

                response = await client.post(
                    f"{self.base_url}/embeddings",
                    json=payload,
                    headers=self._headers(),
                )
                response.raise_for_status()

                data = response.json()

                logger.debug(
                    "llm_embedding_response",
                    model=model,
                    vectors=len(data.get("data", [])),
                )

                return data

        except httpx.HTTPError as e:
            logger.error("llm_embedding_error", error=str(e))
            raise

    async def list_models(self) -> List[str]:
        """List model ids available to the API key.

        Returns:
            List of model ids

        Raises:
            httpx.HTTPError: On API errors
        """
        try:
            async with httpx.AsyncClient(timeout=5.0, transport=self.transport) as client:
                response = await client.get(f"{self.base_url}/models", headers=self._headers())
                response.raise_for_status()
                data = response.json()
                return [m["id"] for m in data.get("data", [])]
        except httpx.HTTPError as e:
            logger.error("llm_list_models_error", error=str(e))
            raise

    @staticmethod
    def message_content(data: Dict) -> str:
        """Pull the assistant text out of a chat completion response."""
        choices = data.get("choices") or [{}]
        return (choices[0].get("message") or {}).get("content") or ""
