"""Global constants for the core package.

This module contains shared constants used across the application core.
"""

from typing import Final

# HTTP Client Constants
HTTP_CONNECTION_LIMIT: Final[int] = 10
HTTP_TIMEOUT_CONNECT: Final[float] = 5.0
HTTP_TIMEOUT_SOCK_READ: Final[float] = 6.0
HTTP_TIMEOUT_TOTAL: Final[float] = 6.0
HTTP_USER_AGENT: Final[str] = "LocationPipeline/1.0"

# Unit Conversion
MS_TO_KMH: Final[float] = 3.6
