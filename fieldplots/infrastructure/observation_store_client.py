"""
Infrastructure layer: Observation record store client with retry logic.

The store exposes collection-scoped queries over plots, observations and
sampling-unit progress. Results are fully materialized here before being
handed to the synchronous analysis core.
"""
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

import httpx
from pydantic import BaseModel
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from fieldplots.config import settings
from fieldplots.domain.models import (
    Plot,
    SamplingUnitProgress,
    TreeObservation,
    VegetationObservation,
)
from fieldplots.infrastructure.api_constants import ObservationStoreEndpoints, StoreConstants

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", bound=BaseModel)


class StoreListResponse(BaseModel):
    """Paginated collection envelope returned by the store."""
    count: int
    next: Optional[str] = None
    previous: Optional[str] = None
    results: List[Dict[str, Any]]


class ObservationStoreError(Exception):
    """Custom exception for record store errors."""

    def __init__(self, message: str, status_code: int = 502):
        self.message = message
        self.status_code = status_code
        super().__init__(message)


class ObservationStoreClient:
    """
    Client for the observation record store.
    Implements retry logic with exponential backoff on server errors.
    """

    def __init__(self):
        """Initialize the store client with configuration."""
        self.base_url = settings.observation_store_base_url
        self.api_key = settings.observation_store_api_key
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers={
                "Authorization": f"Bearer {self.api_key}",
                "accept": StoreConstants.CONTENT_TYPE_JSON,
            },
            timeout=StoreConstants.DEFAULT_TIMEOUT,
        )

    async def __aenter__(self) -> "ObservationStoreClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception_type((httpx.HTTPStatusError, httpx.TransportError)),
        reraise=True,
    )
    async def _send(self, method: str, url: str, **kwargs) -> Any:
        """
        Send one request; server errors and transport failures are retried.

        Raises:
            httpx.HTTPStatusError: On 5xx (retried)
            ObservationStoreError: On 4xx (not retried)
        """
        response = await self.client.request(method, url, **kwargs)
        if response.status_code >= 500:
            response.raise_for_status()
        if response.status_code >= 400:
            raise ObservationStoreError(
                f"Store request failed: {response.status_code} - {response.text}",
                status_code=response.status_code,
            )
        return response.json()

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        **kwargs
    ) -> Any:
        """
        Make an HTTP request with retry logic.

        Args:
            method: HTTP method (GET, POST, etc.)
            endpoint: Store path or absolute URL
            **kwargs: Additional arguments for the request

        Returns:
            Decoded JSON body

        Raises:
            ObservationStoreError: If the request fails after retries
        """
        try:
            return await self._send(method, endpoint, **kwargs)
        except httpx.HTTPStatusError as e:
            raise ObservationStoreError(
                f"Store unavailable: {e.response.status_code} - {e.response.text}",
                status_code=502,
            ) from e
        except httpx.RequestError as e:
            raise ObservationStoreError(f"Store request error: {str(e)}", status_code=503) from e

    async def _fetch_all(
        self,
        endpoint: str,
        model: Type[RecordT],
        params: Optional[Dict[str, Any]] = None,
    ) -> List[RecordT]:
        """
        Fetch every page of a collection query.

        Args:
            endpoint: Collection path
            model: Record model to parse results into
            params: Query filters for the first page

        Returns:
            All records across pages

        Raises:
            ObservationStoreError: If the collection has more than MAX_PAGES pages
        """
        query = {"page_size": StoreConstants.DEFAULT_PAGE_SIZE, **(params or {})}
        data = await self._make_request("GET", endpoint, params=query)
        page = StoreListResponse(**data)
        records = [model(**item) for item in page.results]

        pages = 1
        while page.next and pages < StoreConstants.MAX_PAGES:
            # `next` already carries the query string
            data = await self._make_request("GET", page.next)
            page = StoreListResponse(**data)
            records.extend(model(**item) for item in page.results)
            pages += 1

        if page.next:
            logger.warning(
                f"{endpoint}: stopped after {pages} pages with more results pending",
                extra={"endpoint": endpoint, "records": len(records)},
            )
            raise ObservationStoreError(
                f"Store collection {endpoint} exceeds {StoreConstants.MAX_PAGES} pages"
            )

        return records

    async def get_plot(self, plot_id: str) -> Plot:
        """
        Fetch a single plot.

        Args:
            plot_id: Unique identifier for the plot

        Returns:
            Plot instance

        Raises:
            ObservationStoreError: If the request fails or the plot does not exist
        """
        data = await self._make_request("GET", ObservationStoreEndpoints.plot(plot_id))
        return Plot(**data)

    async def get_plots(self, module_id: str) -> List[Plot]:
        """
        Fetch all plots of a survey module.

        Args:
            module_id: Survey module identifier

        Returns:
            List of Plot instances
        """
        return await self._fetch_all(
            ObservationStoreEndpoints.PLOTS,
            Plot,
            params={"module_id": module_id},
        )

    async def get_tree_observations(
        self,
        module_id: Optional[str] = None,
        plot_id: Optional[str] = None,
    ) -> List[TreeObservation]:
        """
        Fetch tree observations scoped to a module or a single plot.

        Args:
            module_id: Survey module identifier
            plot_id: Plot identifier

        Returns:
            List of TreeObservation instances
        """
        if module_id is None and plot_id is None:
            raise ValueError("Either module_id or plot_id is required")

        params = {}
        if module_id is not None:
            params["module_id"] = module_id
        if plot_id is not None:
            params["plot_id"] = plot_id
        return await self._fetch_all(
            ObservationStoreEndpoints.TREE_OBSERVATIONS,
            TreeObservation,
            params=params,
        )

    async def get_vegetation_observations(self, plot_id: str) -> List[VegetationObservation]:
        """
        Fetch vegetation (herb/shrub) observations of a plot.

        Args:
            plot_id: Plot identifier

        Returns:
            List of VegetationObservation instances
        """
        return await self._fetch_all(
            ObservationStoreEndpoints.VEGETATION_OBSERVATIONS,
            VegetationObservation,
            params={"plot_id": plot_id},
        )

    async def get_sampling_unit_progress(self, plot_id: str) -> List[SamplingUnitProgress]:
        """
        Fetch completion state of every sampling unit in a plot.

        Args:
            plot_id: Plot identifier

        Returns:
            List of SamplingUnitProgress instances
        """
        return await self._fetch_all(
            ObservationStoreEndpoints.SAMPLING_UNIT_PROGRESS,
            SamplingUnitProgress,
            params={"plot_id": plot_id},
        )


# Singleton instance
_store_client: Optional[ObservationStoreClient] = None


def get_store_client() -> ObservationStoreClient:
    """
    Get or create the singleton store client instance.

    Returns:
        ObservationStoreClient instance
    """
    global _store_client
    if _store_client is None:
        _store_client = ObservationStoreClient()
    return _store_client
