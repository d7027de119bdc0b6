"""
Rate limiting utilities for external API calls.
"""

from aiolimiter import AsyncLimiter

from config import MAPBOX_REQUESTS_PER_MINUTE


def build_mapbox_rate_limiter(
    requests_per_minute: int = MAPBOX_REQUESTS_PER_MINUTE,
) -> AsyncLimiter:
    """Per-minute Mapbox quota; one limiter per service instance."""
    return AsyncLimiter(requests_per_minute, 60)
