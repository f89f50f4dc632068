"""Observability package for DocVault."""

from .logging import setup_logging, get_logger, JSONFormatter, ColoredFormatter

__all__ = [
    'setup_logging',
    'get_logger',
    'JSONFormatter',
    'ColoredFormatter'
]
