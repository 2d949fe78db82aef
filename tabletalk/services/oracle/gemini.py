"""
Gemini Oracle Implementation

Live oracle backed by the Google Gemini ``generateContent`` REST endpoint.
Used whenever GEMINI_API_KEY is configured (ORACLE_PROVIDER=auto) or the
provider is forced to "gemini".

API Documentation:
    https://ai.google.dev/api/generate-content
"""

import logging
from datetime import datetime
from typing import Optional

import httpx

from tabletalk.core.config import get_settings
from tabletalk.core.exceptions import OracleError
from tabletalk.services.oracle.base import BaseOracle, OracleReply

logger = logging.getLogger(__name__)


class GeminiOracle(BaseOracle):
    """
    Production Gemini oracle.

    Example:
        >>> oracle = GeminiOracle()
        >>> reply = await oracle.complete("MENU: ...\\nUSER: 2 momo please")
        >>> print(reply.text)
        'Two momos coming up! {"action":"ADD_ITEM","name":"Momo","qty":2}'
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        timeout: Optional[float] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize the Gemini client.

        Args:
            api_key: Overrides GEMINI_API_KEY
            model: Overrides GEMINI_MODEL
            timeout: Overrides ORACLE_TIMEOUT_SECONDS
            client: Pre-built httpx client (tests inject a MockTransport)

        Raises:
            ValueError: If no API key is available
        """
        settings = get_settings()

        self._api_key = api_key or settings.gemini_api_key
        if not self._api_key:
            raise ValueError(
                "GEMINI_API_KEY is required for the Gemini oracle. "
                "Set it in your .env file or use ORACLE_PROVIDER=scripted."
            )

        self._model = model or settings.gemini_model
        self._client = client or httpx.AsyncClient(
            base_url=settings.gemini_base_url,
            timeout=timeout or settings.oracle_timeout_seconds,
        )

        logger.info(f"GeminiOracle initialized (model={self._model})")

    @property
    def provider_name(self) -> str:
        return "gemini"

    @staticmethod
    def _extract_text(payload: dict) -> str:
        candidates = payload.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts).strip()

    async def complete(self, prompt: str) -> OracleReply:
        start_time = datetime.now()

        try:
            response = await self._client.post(
                f"/models/{self._model}:generateContent",
                params={"key": self._api_key},
                json={"contents": [{"role": "user", "parts": [{"text": prompt}]}]},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.TimeoutException as e:
            raise OracleError(f"Gemini timed out: {e}") from e
        except httpx.HTTPStatusError as e:
            raise OracleError(f"Gemini returned HTTP {e.response.status_code}") from e
        except (httpx.HTTPError, ValueError) as e:
            raise OracleError(f"Gemini request failed: {e}") from e

        try:
            text = self._extract_text(payload)
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            raise OracleError(f"Gemini answer had an unexpected shape: {e}") from e
        elapsed_ms = (datetime.now() - start_time).total_seconds() * 1000

        if not text:
            raise OracleError("Gemini returned an empty answer")

        logger.debug(f"Gemini answered in {elapsed_ms:.0f}ms")
        return OracleReply(text=text, model=self._model, response_time_ms=elapsed_ms)

    async def health_check(self) -> bool:
        try:
            response = await self._client.get(
                f"/models/{self._model}",
                params={"key": self._api_key},
            )
            return response.status_code == 200
        except httpx.HTTPError as e:
            logger.error(f"Gemini health check failed: {e}")
            return False

    async def aclose(self) -> None:
        await self._client.aclose()
