"""Ticker search for mapping symbols like AAPL to Trading 212 instrument codes"""

import asyncio
import os
import logging
from typing import Any, Optional
import aiohttp

from broker_gateway import TickerResolver, TickerResolutionError
from rebalancer_config import AppConfig, get_config


class AlgoliaTickerResolver(TickerResolver):
    """Resolve symbols through the broker's public instrument search index"""

    def __init__(self, config: Optional[AppConfig] = None, logger: Optional[logging.Logger] = None):
        self.config = config or get_config()
        self.logger = logger or logging.getLogger(__name__)
        self.api_key = os.getenv('T212_SEARCH_API_KEY')

    async def resolve(self, raw_symbol: str) -> Optional[str]:
        """Return the first matching instrument code; any failure yields None"""
        if not isinstance(raw_symbol, str) or not raw_symbol.strip():
            return None

        if not self.api_key:
            self.logger.warning(f"T212_SEARCH_API_KEY not set, cannot convert ticker {raw_symbol}")
            return None

        try:
            code = await self._search(raw_symbol.strip())
        except TickerResolutionError as e:
            self.logger.error(f'Error converting ticker "{raw_symbol}": {e}')
            return None

        if code:
            self.logger.info(f'Converted ticker "{raw_symbol}" to "{code}"')
        else:
            self.logger.warning(f'Ticker "{raw_symbol}" not found')
        return code

    async def _search(self, query: str) -> Optional[str]:
        resolver = self.config.resolver
        headers = {
            'accept': 'application/json',
            'content-type': 'application/json',
            'x-algolia-application-id': resolver.application_id,
            'x-algolia-api-key': self.api_key,
        }
        payload = {
            "requests": [{
                "indexName": resolver.index_name,
                "query": query,
                "hitsPerPage": 1,
                "attributesToRetrieve": ["objectID"],
                "filters": resolver.search_filters,
            }]
        }

        self.logger.debug(f"Searching instruments for {query}")

        try:
            async with aiohttp.ClientSession() as session:
                async with session.post(
                    resolver.search_url,
                    json=payload,
                    headers=headers,
                    timeout=aiohttp.ClientTimeout(total=resolver.request_timeout_seconds)
                ) as response:

                    if response.status != 200:
                        response_text = await response.text()
                        raise TickerResolutionError(f"Search returned status {response.status}: {response_text}")

                    data = await response.json(content_type=None)

        except aiohttp.ClientError as e:
            raise TickerResolutionError(f"HTTP error searching for {query}: {e}") from e
        except asyncio.TimeoutError as e:
            raise TickerResolutionError(f"Search for {query} timed out") from e
        except ValueError as e:
            raise TickerResolutionError(f"Invalid JSON from search: {e}") from e

        return first_hit_code(data)


def first_hit_code(data: Any) -> Optional[str]:
    """objectID of the first hit of the first result set, if any"""
    if not isinstance(data, dict):
        return None
    results = data.get('results') or []
    if not results or not isinstance(results[0], dict):
        return None
    hits = results[0].get('hits') or []
    if not hits or not isinstance(hits[0], dict):
        return None
    return hits[0].get('objectID') or None
