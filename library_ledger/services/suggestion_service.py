import logging
from typing import List, Optional

import httpx

from library_ledger.config import settings
from library_ledger.exceptions import SuggestionServiceError

logger = logging.getLogger(__name__)


class SuggestionService:
    """Client for the external book suggestion service.

    Sends ``{"issuedBookTitle", "studentName"}`` and expects
    ``{"suggestedBooks": [...]}`` back. The service is optional: when no URL
    is configured every call raises ``SuggestionServiceError`` so callers can
    report a notice instead of suggestions.
    """

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.url = url if url is not None else settings.suggestion_service_url
        self.api_key = api_key if api_key is not None else settings.suggestion_service_api_key
        self.timeout = timeout if timeout is not None else settings.suggestion_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def enabled(self) -> bool:
        return bool(self.url)

    async def start(self):
        if self._client is None:
            headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                headers=headers,
                transport=self._transport,
            )
            logger.info(f"Suggestion service client ready (enabled={self.enabled})")

    async def close(self):
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def suggest_books(self, issued_book_title: str, student_name: str) -> List[str]:
        if not self.enabled:
            raise SuggestionServiceError("Book suggestions are not configured")

        await self.start()
        payload = {"issuedBookTitle": issued_book_title, "studentName": student_name}
        try:
            response = await self._client.post(self.url, json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as e:
            raise SuggestionServiceError(f"Suggestion service timed out after {self.timeout}s") from e
        except httpx.HTTPError as e:
            raise SuggestionServiceError(f"Suggestion service request failed: {e}") from e
        except ValueError as e:
            raise SuggestionServiceError("Suggestion service returned invalid JSON") from e

        suggested = data.get("suggestedBooks") if isinstance(data, dict) else None
        if not isinstance(suggested, list) or not all(isinstance(title, str) for title in suggested):
            raise SuggestionServiceError("Suggestion service returned an unexpected payload")
        return suggested[:settings.suggestion_count]


suggestion_service = SuggestionService()
