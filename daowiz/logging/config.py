"""
Centralized logging configuration for daowiz.

This module provides standardized logging configuration using structlog
for all components. All logging throughout the system should use this
configuration to ensure consistent formatting and structured logging.

Signing keys are never bound into a logger; only the signer's public
address may appear in log context.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from structlog.types import FilteringBoundLogger


def configure_logging(
    level: str = "INFO",
    format_json: bool = False,
    include_timestamp: bool = True,
    include_caller: bool = False,
    extra_processors: Optional[list] = None
) -> None:
    """
    Configure structlog for the entire application.

    Logs go to stderr so that stdout stays reserved for command output
    (created addresses, instance listings).

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        format_json: If True, output JSON format; otherwise human-readable
        include_timestamp: Include timestamp in log output
        include_caller: Include caller information (filename, line number)
        extra_processors: Additional structlog processors to include
    """
    log_level = getattr(logging, level.upper())

    logging.basicConfig(
        level=log_level,
        stream=sys.stderr,
        format="%(message)s"  # structlog will handle formatting
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    if include_timestamp:
        processors.append(structlog.processors.TimeStamper(fmt="iso"))

    if include_caller:
        processors.append(structlog.processors.CallsiteParameterAdder(
            parameters=[structlog.processors.CallsiteParameter.FILENAME,
                       structlog.processors.CallsiteParameter.LINENO]
        ))

    if extra_processors:
        processors.extend(extra_processors)

    if format_json:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=sys.stderr.isatty()))

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> FilteringBoundLogger:
    """
    Get a configured structlog logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Configured structlog logger instance
    """
    return structlog.get_logger(name)


def get_deployment_logger(name: str) -> FilteringBoundLogger:
    """
    Get a logger bound to the deployment subsystem.

    Every step of the create operation logs through this logger so that
    an operator can reconstruct which transactions were confirmed.
    """
    return get_logger(name).bind(
        subsystem="deployment",
        audit_trail=True
    )


def get_scan_logger(name: str) -> FilteringBoundLogger:
    """Get a logger bound to the instance scanner subsystem."""
    return get_logger(name).bind(subsystem="scanner")


def log_deploy_step(
    logger: FilteringBoundLogger,
    step: str,
    outcome: str,
    instance: Optional[str] = None,
    context: Optional[dict[str, Any]] = None
) -> None:
    """
    Log the outcome of a deployment step with standardized format.

    Args:
        logger: Structlog logger instance
        step: Name of the step (deploy, install, publish, link)
        outcome: "ok" or the name of the failure
        instance: Address of the instance, once known
        context: Additional context data
    """
    bound_logger = logger.bind(
        step=step,
        outcome=outcome,
        instance=instance,
    )

    if context:
        bound_logger = bound_logger.bind(context=context)

    if outcome == "ok":
        bound_logger.info("Deployment step completed")
    else:
        bound_logger.warning("Deployment step failed")
