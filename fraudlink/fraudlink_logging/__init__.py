"""
Structured logging for fraudlink: structlog JSON (or console) records on stderr.
"""

from fraudlink.fraudlink_logging.logger import bind_cluster, configure_structlog, get_logger

__all__ = ["bind_cluster", "configure_structlog", "get_logger"]
