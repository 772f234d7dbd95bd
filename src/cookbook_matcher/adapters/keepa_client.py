"""Keepa product search API client."""

from dataclasses import dataclass
from typing import Protocol

import httpx

from cookbook_matcher.domain.errors import TransientIOFailure


class ProductSearchClient(Protocol):
    """Interface for retail product search by title."""

    async def search_products(self, term: str) -> dict[str, object]:
        """Search products by title and return raw API data."""


@dataclass
class HttpxKeepaClient(ProductSearchClient):
    """HTTPX-backed Keepa client for the US marketplace."""

    api_key: str
    base_url: str
    http_client: httpx.AsyncClient

    @classmethod
    def create(cls, api_key: str, base_url: str) -> "HttpxKeepaClient":
        """Create a Keepa client with a managed httpx session."""
        return cls(api_key=api_key, base_url=base_url, http_client=httpx.AsyncClient())

    async def search_products(self, term: str) -> dict[str, object]:
        """Search products by title."""
        url = f"{self.base_url}/search"
        try:
            response = await self.http_client.get(
                url,
                params={
                    "key": self.api_key,
                    "domain": 1,
                    "type": "product",
                    "term": term,
                    "page": 0,
                    "history": 0,
                },
                timeout=15,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise TransientIOFailure(f"Keepa search failed: {exc}") from exc
        return response.json()

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()
