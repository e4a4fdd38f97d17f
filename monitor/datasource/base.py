"""
Base data source interface.
"""

from abc import ABC, abstractmethod
from typing import Generic, TypeVar

from pydantic import BaseModel

from monitor.services.client import ServiceClient

T = TypeVar("T", bound=BaseModel)


class BaseDataSource(ABC, Generic[T]):
    """
    Abstract base class for all data sources.

    All data sources should:
    - Use their service's ServiceClient for HTTP requests
    - Return Pydantic models
    - Raise when nothing usable could be fetched, so the refresh
      orchestrator can report the failure
    """

    def __init__(self, client: ServiceClient):
        self.client = client

    @property
    def service_id(self) -> str:
        """Name of the service this source fetches through."""
        return self.client.name

    @abstractmethod
    async def fetch(self) -> list[T]:
        """Fetch data from the source."""
        ...

    @abstractmethod
    def is_configured(self) -> bool:
        """Check if the data source is properly configured."""
        ...
