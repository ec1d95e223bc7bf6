"""Activity logging package."""

from subtrack.audit.logger import ActivityLogger, configure_logging, create_correlation_id

__all__ = ["ActivityLogger", "configure_logging", "create_correlation_id"]
