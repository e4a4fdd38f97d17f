"""
Stage helpers - fan out a set of fetchers and collect every outcome.
"""

import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable

Fetcher = Callable[[], Awaitable[Any]]


class RefreshStage(str, Enum):
    """Fixed refresh tiers, in execution order."""

    CRITICAL = "critical"  # News, market indices
    SECONDARY = "secondary"  # Crypto, commodities, intel, economic
    TERTIARY = "tertiary"  # Prediction markets


@dataclass
class FetchOutcome:
    """Result of one fetcher within a stage."""

    label: str
    result: Any = None
    error: BaseException | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def _run(fetcher: Fetcher) -> Any:
    return await fetcher()


async def settle_all(fetchers: dict[str, Fetcher]) -> list[FetchOutcome]:
    """
    Run all fetchers concurrently and wait for every one to settle.

    A failing fetcher never cancels its siblings; its exception is returned
    in the matching FetchOutcome instead of being raised.
    """
    labels = list(fetchers)
    results = await asyncio.gather(
        *(_run(fetchers[label]) for label in labels),
        return_exceptions=True,
    )

    outcomes = []
    for label, result in zip(labels, results):
        if isinstance(result, BaseException):
            outcomes.append(FetchOutcome(label=label, error=result))
        else:
            outcomes.append(FetchOutcome(label=label, result=result))
    return outcomes
