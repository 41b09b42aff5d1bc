"""OpenRouter chat-completions client used by AI-assisted extraction."""

import asyncio
from typing import Any, Dict, List, Optional

import httpx

from show_import.core.config import LLMSettings
from show_import.core.exceptions import APIClientError, APITimeoutError, ConfigurationError
from show_import.utils.logging import get_logger

LOGGER = get_logger(__name__)

JSON_ONLY_SUFFIX = "\n\nIMPORTANT: Respond with valid JSON only."

# Rate limiting and upstream failures are worth another attempt
RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class OpenRouterClient:
    """Minimal OpenAI-compatible chat client with bounded retries.

    Attributes:
        model: Model slug sent with every request
        base_url: Full chat-completions URL
        timeout: Per-request timeout in seconds
        max_retries: Total attempts per call (at least one)
        retry_delay: Base delay for exponential backoff
    """

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str = "https://openrouter.ai/api/v1/chat/completions",
        timeout: float = 60,
        max_retries: int = 3,
        retry_delay: float = 2,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self._transport = transport

    async def generate_content(
        self,
        contents: str,
        system_instruction: Optional[str] = None,
        generation_config: Optional[Dict[str, Any]] = None,
    ) -> str:
        """Send one prompt and return the assistant message text.

        Args:
            contents: User prompt
            system_instruction: Optional system message
            generation_config: ``temperature``, ``max_output_tokens`` and
                ``response_mime_type`` (``application/json`` asks for JSON only)

        Raises:
            APIClientError: On non-retryable errors, exhausted retries or a
                response without choices
            APITimeoutError: If every attempt timed out
        """
        config = generation_config or {}
        system_text = system_instruction or ""
        if config.get("response_mime_type") == "application/json":
            system_text = (system_text + JSON_ONLY_SUFFIX).strip()

        messages: List[Dict[str, str]] = []
        if system_text:
            messages.append({"role": "system", "content": system_text})
        messages.append({"role": "user", "content": contents})

        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": config.get("temperature", 0.0),
        }
        if "max_output_tokens" in config:
            payload["max_tokens"] = config["max_output_tokens"]

        body = await self._post(payload)
        choices = body.get("choices") or []
        if not choices:
            LOGGER.error("OpenRouter response had no choices", extra={"model": self.model})
            raise APIClientError("Invalid response format from OpenRouter")

        content = (choices[0].get("message") or {}).get("content") or ""
        if not content:
            LOGGER.warning("Empty completion from OpenRouter", extra={"model": self.model})
        return content

    @staticmethod
    def _read_body(response: httpx.Response) -> Dict[str, Any]:
        try:
            body = response.json()
        except ValueError as e:
            LOGGER.error(
                "OpenRouter answered with a non-JSON body",
                extra={"content_type": response.headers.get("content-type"), "body": response.text[:200]},
            )
            raise APIClientError("Invalid response format from OpenRouter", original_error=e)
        if not isinstance(body, dict):
            raise APIClientError("Invalid response format from OpenRouter")
        return body

    async def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        headers = {"Authorization": f"Bearer {self.api_key}"}
        last_error: Optional[Exception] = None

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            for attempt in range(1, self.max_retries + 1):
                try:
                    response = await client.post(self.base_url, headers=headers, json=payload)
                    response.raise_for_status()
                    return self._read_body(response)
                except httpx.HTTPStatusError as e:
                    status_code = e.response.status_code
                    LOGGER.warning(
                        f"OpenRouter returned {status_code} (attempt {attempt}/{self.max_retries})",
                        extra={"error_body": e.response.text[:500]},
                    )
                    if status_code not in RETRYABLE_STATUS_CODES:
                        raise APIClientError(f"OpenRouter rejected the request: {status_code}", original_error=e)
                    last_error = e
                except httpx.TimeoutException as e:
                    LOGGER.warning(f"OpenRouter timed out (attempt {attempt}/{self.max_retries})")
                    last_error = e
                except httpx.HTTPError as e:
                    LOGGER.warning(f"OpenRouter transport error (attempt {attempt}/{self.max_retries}): {e}")
                    last_error = e

                if attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay * (2 ** (attempt - 1)))

        if isinstance(last_error, httpx.TimeoutException):
            raise APITimeoutError(
                f"OpenRouter timed out after {self.max_retries} attempts", original_error=last_error
            )
        raise APIClientError(
            f"OpenRouter call failed after {self.max_retries} attempts", original_error=last_error
        )


def create_llm_client(llm_settings: LLMSettings) -> Optional[OpenRouterClient]:
    """Build the configured LLM client, or None when AI extraction is disabled.

    Raises:
        ConfigurationError: If an unsupported provider is configured
    """
    if not llm_settings.enabled:
        LOGGER.info("No LLM API key configured, AI-assisted extraction disabled")
        return None

    if llm_settings.provider != "openrouter":
        raise ConfigurationError(f"Unsupported LLM provider: {llm_settings.provider}")

    LOGGER.info(f"AI-assisted extraction enabled with model {llm_settings.openrouter_model}")
    return OpenRouterClient(
        api_key=llm_settings.openrouter_api_key,
        model=llm_settings.openrouter_model,
        base_url=llm_settings.openrouter_api_url,
        timeout=llm_settings.timeout_seconds,
        max_retries=llm_settings.max_retries,
    )
