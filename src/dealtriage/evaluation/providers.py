"""Valuation provider interface.

Providers produce one part of an evaluation (ARV, rehab, rent,
neighborhood grade or summary) for a lead. AI providers run in every
tier; verified providers (paid comparable-sales services) only in the
full tier.

Example usage:
    class MyRentProvider(ValuationProvider):
        name = "my_rent"
        field = ProviderField.RENT

        async def estimate(self, lead):
            return ProviderResult(value=1850, confidence_percentage=72)
"""

import logging
import time
from abc import ABC, abstractmethod
from typing import Any, Optional

import httpx
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from ..errors import ProviderError
from ..models.evaluation import ProviderField
from ..models.lead import Lead
from ..models.valuation import ComparableSale, ConfidenceLevel

logger = logging.getLogger(__name__)


class ProviderResult(BaseModel):
    """What a provider returns for one lead.

    value is used for the numeric fields (arv, rehab, rent); text for the
    neighborhood grade or the summary.
    """

    value: Optional[float] = Field(default=None, ge=0)
    text: Optional[str] = None
    confidence_level: Optional[ConfidenceLevel] = None
    confidence_percentage: Optional[float] = Field(default=None, ge=0, le=100)
    note: Optional[str] = None
    comparables: list[ComparableSale] = Field(default_factory=list)
    prompt: Optional[str] = None
    raw_response: Optional[str] = None
    parsed: Optional[dict[str, Any]] = None
    cost: float = Field(default=0, ge=0)


class ValuationProvider(ABC):
    """Abstract base class for valuation providers.

    Attributes:
        name: Unique identifier (e.g., "claude_arv", "rentcast")
        field: Which part of the evaluation this provider fills
        verified: True for paid verified-data providers, which only run in
                  the full tier and whose comparables are marked verified
    """

    name: str
    field: ProviderField
    verified: bool = False

    @abstractmethod
    async def estimate(self, lead: Lead) -> ProviderResult:
        """Produce this provider's part of an evaluation.

        Args:
            lead: Lead to evaluate

        Returns:
            ProviderResult for the lead

        Raises:
            ProviderError: If the provider is unavailable or the call fails
        """
        pass

    def is_available(self) -> bool:
        """Check whether the provider is configured and usable."""
        return True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r} field={self.field.value}>"


class HttpValuationProvider(ValuationProvider):
    """Provider backed by an HTTP endpoint returning a ProviderResult.

    The lead is POSTed as JSON; the response body must match
    ProviderResult.

    Example:
        provider = HttpValuationProvider(
            name="rentcast",
            field=ProviderField.ARV,
            url="https://valuations.internal/arv",
            verified=True,
        )
    """

    def __init__(
        self,
        name: str,
        field: ProviderField,
        url: str,
        verified: bool = False,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.name = name
        self.field = field
        self.url = url
        self.verified = verified
        self.api_key = api_key
        self.timeout = timeout
        self._client = client

    def is_available(self) -> bool:
        return bool(self.url)

    def _headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        return await client.post(
            self.url, json=payload, headers=self._headers(), timeout=self.timeout
        )

    async def estimate(self, lead: Lead) -> ProviderResult:
        payload = lead.model_dump(mode="json", exclude={"metadata", "notes"})
        start = time.perf_counter()
        try:
            if self._client is not None:
                response = await self._post(self._client, payload)
            else:
                async with httpx.AsyncClient() as client:
                    response = await self._post(client, payload)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                self.name, f"HTTP {e.response.status_code} from {self.url}"
            ) from e
        except httpx.HTTPError as e:
            raise ProviderError(self.name, f"request failed: {e}") from e

        try:
            result = ProviderResult.model_validate_json(response.content)
        except PydanticValidationError as e:
            raise ProviderError(self.name, f"invalid response: {e.error_count()} error(s)") from e

        elapsed = time.perf_counter() - start
        logger.debug(f"{self.name} answered for {lead.id} in {elapsed:.2f}s")
        if result.raw_response is None:
            result = result.model_copy(update={"raw_response": response.text})
        return result
