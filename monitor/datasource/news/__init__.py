"""
RSS news feed source.
"""

from monitor.datasource.news.feeds import FeedDocument, NewsFeedSource

__all__ = ["FeedDocument", "NewsFeedSource"]
