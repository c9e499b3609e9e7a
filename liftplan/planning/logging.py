"""Planning Failure Observability.

Call these before re-raising a PlanningError so that every fatal
engine failure leaves one structured log line behind.
"""

from loguru import logger

from liftplan.planning.errors import AdaptationError, TemplateValidationError


def log_template_validation_failure(
    err: TemplateValidationError,
    context: dict[str, str | int | float | bool | None],
) -> None:
    """Log a template validation failure with context.

    Args:
        err: The TemplateValidationError that occurred
        context: Additional context dictionary for logging
    """
    logger.error(
        "TEMPLATE_VALIDATION_FAILED",
        code=err.code,
        failures=len(err.details),
        details=err.details,
        **context,
    )


def log_adaptation_failure(
    err: AdaptationError,
    context: dict[str, str | int | float | bool | None],
) -> None:
    """Log an adaptation failure with context.

    Args:
        err: The AdaptationError that occurred
        context: Additional context dictionary for logging
    """
    logger.error(
        "ADAPTATION_FAILED",
        code=err.code,
        details=err.details,
        **context,
    )
