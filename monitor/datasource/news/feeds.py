"""
RSS news feed source.

Downloads raw feed documents through the news service client. Parsing the
XML is left to the consumer.
"""

from datetime import datetime

from loguru import logger
from pydantic import BaseModel

from monitor.datasource.base import BaseDataSource
from monitor.refresh.stages import settle_all
from monitor.services.client import ServiceClient
from monitor.services.errors import ServiceError


class FeedDocument(BaseModel):
    """A raw RSS/Atom document downloaded from one feed."""

    name: str
    category: str
    url: str
    content: str
    fetched_at: datetime


class NewsFeedSource(BaseDataSource[FeedDocument]):
    """
    Fetches a set of RSS feeds concurrently.

    Feeds are given as {category: {feed name: url}}. A failing feed is
    skipped; the fetch only fails when every feed failed.
    """

    def __init__(self, client: ServiceClient, feeds: dict[str, dict[str, str]]):
        super().__init__(client)
        self.feeds = feeds

    def is_configured(self) -> bool:
        return bool(self.feeds)

    async def fetch(self) -> list[FeedDocument]:
        entries = [
            (category, name, url)
            for category, feeds in self.feeds.items()
            for name, url in feeds.items()
        ]

        def fetcher(url: str):
            return lambda: self.client.get_text(url)

        outcomes = await settle_all(
            {f"{category}:{name}": fetcher(url) for category, name, url in entries}
        )

        documents = []
        for (category, name, url), outcome in zip(entries, outcomes):
            if not outcome.ok:
                logger.warning(f"Feed '{name}' failed: {outcome.error}")
                continue
            documents.append(
                FeedDocument(
                    name=name,
                    category=category,
                    url=url,
                    content=outcome.result,
                    fetched_at=datetime.now(),
                )
            )

        if entries and not documents:
            raise ServiceError(
                f"All {len(entries)} feeds failed", service_id=self.service_id
            )

        logger.info(f"Fetched {len(documents)}/{len(entries)} {self.service_id} feeds")
        return documents
