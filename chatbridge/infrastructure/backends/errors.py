"""
Vendor error translation - maps SDK exceptions onto the domain taxonomy.
Transient failures become BackendOverloaded (retryable); anything else the
vendor reports becomes BackendUnavailable.
"""

from __future__ import annotations
from typing import Optional, Tuple, Type

from ...domain.errors import BackendError, BackendOverloaded, BackendUnavailable

# HTTP 408 timeout, 409 lock conflict, 429 rate limit, 5xx server errors, 529 overloaded
RETRYABLE_STATUS_CODES = frozenset({408, 409, 429, 500, 502, 503, 504, 529})


def extract_status_code(exception: Exception) -> Optional[int]:
    """Extract HTTP status code from exception if available."""
    for attr_name in ('status_code', 'code', 'response_code'):
        if hasattr(exception, attr_name):
            try:
                return int(getattr(exception, attr_name))
            except (ValueError, TypeError):
                continue

    response = getattr(exception, 'response', None)
    if response is not None and hasattr(response, 'status_code'):
        try:
            return int(response.status_code)
        except (ValueError, TypeError):
            pass

    return None


def translate_sdk_error(
    exception: Exception,
    provider: str,
    transient_types: Tuple[Type[BaseException], ...] = (),
) -> BackendError:
    """Wrap a vendor SDK exception in the matching domain error."""
    status_code = extract_status_code(exception)
    message = f"{provider} API error: {exception}"

    transient = (ConnectionError, TimeoutError) + tuple(transient_types)
    if isinstance(exception, transient):
        return BackendOverloaded(message, status_code=status_code)
    if status_code is not None and status_code in RETRYABLE_STATUS_CODES:
        return BackendOverloaded(message, status_code=status_code)
    return BackendUnavailable(message, status_code=status_code)
