"""
HOSHIYOMI Shared Constants

Centralizes default values and configuration constants used by the
application layer (service adapter, command-line adapter, config loading
and logging). Astronomical constants used by the computation core live in
services/ephemeris/constants.py.

Constants are organized by category:
    - Version and identity
    - Network defaults
    - Command-line defaults
    - File paths and formats
"""

from typing import Final

# =============================================================================
# Version and Identity
# =============================================================================

HOSHIYOMI_VERSION: Final[str] = "0.1.0"
HOSHIYOMI_NAME: Final[str] = "hoshiyomi"

# =============================================================================
# Network Defaults
# =============================================================================

# Moon API service
SERVER_DEFAULT_HOST: Final[str] = "::"
SERVER_DEFAULT_PORT: Final[int] = 50051
REQUEST_TIMEOUT_SEC: Final[float] = 5.0

# Route of the moon info method (mirrors the RPC method path)
MOON_INFO_ROUTE: Final[str] = "/moon.MoonApi/MoonInfo"
HEALTH_ROUTE: Final[str] = "/health"

# Request tracing
CORRELATION_HEADER: Final[str] = "X-Correlation-ID"
CORRELATION_PREFIX: Final[str] = "moon"

# =============================================================================
# Command-line Defaults
# =============================================================================

# The calc command evaluates the moon age at local noon in JST by default
CALC_DEFAULT_UTC_OFFSET: Final[str] = "+09:00"
CALC_DEFAULT_TIME_OF_DAY: Final[str] = "12:00"

# Exit codes
EXIT_OK: Final[int] = 0
EXIT_INVALID_INPUT: Final[int] = 1
EXIT_INTERNAL_ERROR: Final[int] = 2

# =============================================================================
# File Paths and Formats
# =============================================================================

# Configuration file search paths
CONFIG_FILENAME: Final[str] = "hoshiyomi.yaml"
ENV_PREFIX: Final[str] = "HOSHIYOMI_"

# Log settings
LOG_MAX_BYTES: Final[int] = 10 * 1024 * 1024  # 10 MB
LOG_BACKUP_COUNT: Final[int] = 5
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"
