"""Logging configuration for the service."""

import logging


def _resolve_level(level_name: str) -> int:
    return getattr(logging, level_name.upper(), logging.INFO)


def configure_logging(level_name: str = "INFO") -> None:
    """Configure root logging once with a concise format."""
    level = _resolve_level(level_name)
    formatter = logging.Formatter("%(asctime)s %(levelname)s %(name)s %(message)s")
    root_logger = logging.getLogger()

    if not root_logger.handlers:
        logging.basicConfig(level=level)
    root_logger.setLevel(level)
    for handler in root_logger.handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)

    # httpx logs every request at INFO, including RPC URLs
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
