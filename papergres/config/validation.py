"""
Configuration validation for papergres.

Checks that go beyond what the Pydantic models enforce per field.
"""

import structlog

from papergres.config.models import PapergresConfig, SSLMode

logger = structlog.get_logger()


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""

    pass


def validate_config(config: PapergresConfig) -> list[str]:
    """
    Validate papergres configuration.

    Args:
        config: PapergresConfig to validate

    Returns:
        List of warning messages (non-fatal issues)

    Raises:
        ConfigurationError: If configuration has fatal issues
    """
    warnings: list[str] = []
    errors: list[str] = []
    conn = config.connection
    execution = config.execution

    if not conn.database:
        errors.append("connection.database is empty")
    if not conn.host:
        errors.append("connection.host is empty")

    # More concurrent iterations than pooled connections only queue on checkout
    if (
        execution.max_concurrency is not None
        and execution.max_concurrency > execution.pool_capacity
    ):
        warnings.append(
            f"execution.max_concurrency ({execution.max_concurrency}) exceeds pool "
            f"capacity ({execution.pool_capacity}); extra iterations will wait "
            "for a free connection"
        )

    if conn.ssl_mode == SSLMode.DISABLE and conn.host not in ("localhost", "127.0.0.1", "::1"):
        warnings.append(f"SSL is disabled for remote host {conn.host}")

    if (conn.ssl_cert and not conn.ssl_key) or (conn.ssl_key and not conn.ssl_cert):
        errors.append("connection.ssl_cert and connection.ssl_key must be set together")

    for warning in warnings:
        logger.warning("config_warning", message=warning)

    if errors:
        for error in errors:
            logger.error("config_error", message=error)
        raise ConfigurationError(
            f"Configuration has {len(errors)} error(s): " + "; ".join(errors)
        )

    return warnings
