"""Error codes for the crash dashboard.

Error Code Convention:
    CD1xx - Fetch errors (network, throttling, response bodies)
    CD2xx - Data errors (annotations, signatures)
    CD3xx - Configuration and argument errors
"""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    """Structured error codes for the status line and logs."""

    # Fetch errors (CD1xx)
    CD100 = "CD100"  # Transport failure
    CD101 = "CD101"  # Backoff budget exhausted
    CD102 = "CD102"  # Response body is not the expected JSON
    CD103 = "CD103"  # Non-throttling HTTP error status

    # Data errors (CD2xx)
    CD200 = "CD200"  # Generic data error
    CD201 = "CD201"  # Annotation could not be parsed
    CD202 = "CD202"  # Report produced an empty signature

    # Configuration errors (CD3xx)
    CD300 = "CD300"  # Generic configuration error
    CD301 = "CD301"  # Invalid configuration value
    CD302 = "CD302"  # Invalid argument passed by a caller
