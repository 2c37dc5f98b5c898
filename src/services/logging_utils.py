"""Service layer logging utilities.

Provides structured logging functions for service operations, enabling
consistent log format and context across allocation, costing and
preparation commits.

Usage:
    from src.services.logging_utils import get_service_logger, log_operation

    logger = get_service_logger(__name__)

    log_operation(
        logger,
        operation="check_and_reserve",
        outcome="insufficient_stock",
        recipe_id=45,
        missing_ingredients=[3, 7],
    )
"""

import logging
from typing import Any


def get_service_logger(name: str) -> logging.Logger:
    """
    Get a logger configured for service operations.

    Args:
        name: Logger name (typically __name__ of the calling module)

    Returns:
        Logger named 'larder.services.<module>'

    Example:
        >>> get_service_logger("src.services.allocation_engine").name
        'larder.services.allocation_engine'
    """
    if "." in name:
        name = name.split(".")[-1]
    return logging.getLogger(f"larder.services.{name}")


def log_operation(
    logger: logging.Logger,
    operation: str,
    outcome: str,
    level: int = logging.INFO,
    **context: Any,
) -> None:
    """
    Log a service operation with structured context.

    The message is "<operation>: <outcome>"; operation, outcome and every
    context field are also attached through ``extra`` for structured handlers.

    Args:
        logger: Logger instance to use
        operation: Operation name (e.g., "commit_preparation")
        outcome: Outcome description (e.g., "success", "concurrent_modification")
        level: Log level (default: INFO)
        **context: Additional context fields (recipe_id, requested, ...)
    """
    extra = {
        "operation": operation,
        "outcome": outcome,
        **context,
    }
    logger.log(level, f"{operation}: {outcome}", extra=extra)
