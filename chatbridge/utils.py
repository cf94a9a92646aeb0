"""
Utility functions for chatbridge.
"""

import logging
import sys
from typing import Optional


def setup_logging(level: str = "INFO", fmt: Optional[str] = None) -> None:
    """Setup logging configuration."""
    logging.basicConfig(
        level=getattr(logging, level.upper()),
        format=fmt or '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.StreamHandler(sys.stderr)
        ]
    )

    # Reduce noise from third-party libraries unless debugging
    if level.upper() != "DEBUG":
        for name in ("httpx", "httpcore", "openai", "anthropic"):
            logging.getLogger(name).setLevel(logging.WARNING)


def validate_api_key(api_key: Optional[str]) -> bool:
    """Validate API key format."""
    if not api_key:
        return False

    # Both vendors issue long opaque tokens
    if len(api_key.strip()) < 10:
        return False

    return True


def truncate_text(text: str, max_length: int = 100) -> str:
    """Truncate text with ellipsis if too long."""
    if len(text) <= max_length:
        return text
    return text[:max_length - 3] + "..."
