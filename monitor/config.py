"""
Static configuration tables for the dashboard data layer.

Cache TTLs, request timeouts, circuit breaker thresholds and rate limit
budgets for every external service.
"""

from datetime import timedelta

# API base URLs
API_URLS = {
    "finnhub": "https://finnhub.io/api/v1",
    "fred": "https://api.stlouisfed.org/fred",
    "coingecko": "https://api.coingecko.com/api/v3",
    "polymarket": "https://gamma-api.polymarket.com",
    "usaspending": "https://api.usaspending.gov/api/v2",
    "congress": "https://api.congress.gov/v3",
    "feargreed": "https://api.alternative.me/fng",
}

# Cache TTLs per data type
CACHE_TTLS = {
    "news": timedelta(minutes=5),
    "markets": timedelta(minutes=1),
    "crypto": timedelta(minutes=1),
    "commodities": timedelta(minutes=5),
    "fed": timedelta(minutes=30),
    "intel": timedelta(minutes=10),
    "polymarket": timedelta(minutes=5),
    "default": timedelta(minutes=5),
}

# Request timeouts (seconds)
TIMEOUTS = {
    "rss": 15.0,  # RSS feeds can be slow
    "api": 10.0,
    "market": 8.0,
}

# Circuit breaker presets: (failure_threshold, reset_timeout)
CIRCUIT_BREAKERS = {
    "news": (3, timedelta(seconds=30)),
    "markets": (2, timedelta(seconds=20)),
    "crypto": (3, timedelta(seconds=30)),
    "intel": (5, timedelta(seconds=60)),
    "polymarket": (3, timedelta(seconds=45)),
}

# Rate limits, kept below each vendor's documented ceiling: (max_calls, window)
RATE_LIMITS = {
    "finnhub": (55, timedelta(minutes=1)),  # vendor limit 60/min
    "coingecko": (25, timedelta(minutes=1)),  # vendor limit 30/min
    "polymarket": (90, timedelta(minutes=1)),  # vendor limit 100/min
    "congress": (4500, timedelta(hours=1)),  # vendor limit 5000/hour
    "usaspending": (100, timedelta(minutes=1)),  # undocumented
    "fred": (100, timedelta(minutes=1)),
    "feargreed": (30, timedelta(minutes=1)),
}

# Service client definitions: name -> (cache ttl key, timeout key, rate limiter)
SERVICES = {
    "news": ("news", "rss", None),
    "markets": ("markets", "market", "finnhub"),
    "crypto": ("crypto", "api", "coingecko"),
    "intel": ("intel", "rss", None),
    "polymarket": ("polymarket", "api", "polymarket"),
    "fred": ("fed", "api", "fred"),
}

# RSS feeds fetched by the critical and secondary tiers
NEWS_FEEDS = {
    "politics": {
        "BBC World": "https://feeds.bbci.co.uk/news/world/rss.xml",
        "NPR News": "https://feeds.npr.org/1001/rss.xml",
        "Guardian World": "https://www.theguardian.com/world/rss",
    },
    "tech": {
        "Hacker News": "https://hnrss.org/frontpage",
        "Ars Technica": "https://feeds.arstechnica.com/arstechnica/technology-lab",
    },
    "finance": {
        "CNBC": "https://www.cnbc.com/id/100003114/device/rss/rss.html",
        "MarketWatch": "https://feeds.marketwatch.com/marketwatch/topstories",
    },
}

INTEL_FEEDS = {
    "CSIS": "https://www.csis.org/analysis/feed",
    "War on the Rocks": "https://warontherocks.com/feed",
    "Defense One": "https://www.defenseone.com/rss/all/",
}
