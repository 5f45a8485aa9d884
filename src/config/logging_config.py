"""
Tiered Logging Configuration for Mantrify

Provides a flexible logging system with 5 levels:
- TRACE (5): Ultra-verbose debugging (row-level details, every file probe)
- DEBUG (10): Detailed debugging (plans, intermediate counts)
- INFO (20): Standard operational messages (requests served, deletions completed)
- WARN (30): Warnings (missing files, unset configuration)
- ERROR (40): Errors (exceptions, failed transactions)

Environment Variables:
- LOG_LEVEL: Global log level (TRACE, DEBUG, INFO, WARN, ERROR) [default: INFO]
- LOG_LEVEL_DELETION: Override for the user deletion workflow
- LOG_LEVEL_QUEUER: Override for the queuer client
- LOG_LEVEL_AUTH: Override for authentication
- LOG_LEVEL_MANTRAS: Override for mantra and sound handling

Example Usage:
    from src.config.logging_config import get_logger

    logger = get_logger(__name__)
    logger.trace("🔍 Probing path %s", path)
    logger.info("✅ User %d deleted", user_id)
    logger.warning("⚠️ File not found, skipping: %s", path)
"""

import logging
import os


# Define custom TRACE level (more verbose than DEBUG)
TRACE = 5
logging.addLevelName(TRACE, "TRACE")


def trace(self, message, *args, **kwargs):
    """Log a message with severity 'TRACE'."""
    if self.isEnabledFor(TRACE):
        self._log(TRACE, message, args, **kwargs)


# Add trace method to Logger class
logging.Logger.trace = trace


# Module name mapping: Python module path → Logical service name
MODULE_NAME_MAP = {
    "src.services.user_deletion_service": "mantrify.deletion",
    "src.services.queuer_client": "mantrify.queuer",
    "src.services.auth_service": "mantrify.auth",
    "src.dependencies.auth": "mantrify.auth",
    "src.services.mantra_service": "mantrify.mantras",
    "src.services.sound_service": "mantrify.mantras",
    "src.utils.file_paths": "mantrify.mantras",
}

SERVICE_OVERRIDES = ["DELETION", "QUEUER", "AUTH", "MANTRAS"]


def get_log_level(module_name: str, default: str = "INFO") -> int:
    """
    Get the log level for a module, checking both module-specific and global env vars.

    Priority:
    1. Module-specific env var (LOG_LEVEL_DELETION, LOG_LEVEL_QUEUER, etc.)
    2. Global LOG_LEVEL env var
    3. Default level (INFO)

    Args:
        module_name: Python module name (e.g., "src.services.queuer_client")
        default: Default log level if no env vars set

    Returns:
        Numeric log level (5=TRACE, 10=DEBUG, 20=INFO, 30=WARN, 40=ERROR)
    """
    logical_name = MODULE_NAME_MAP.get(module_name, module_name)

    # "mantrify.deletion" → "DELETION"
    service_name = None
    if logical_name.startswith("mantrify."):
        service_name = logical_name.split(".")[-1].upper()

    if service_name:
        module_level = os.getenv(f"LOG_LEVEL_{service_name}")
        if module_level:
            return _parse_log_level(module_level)

    global_level = os.getenv("LOG_LEVEL")
    if global_level:
        return _parse_log_level(global_level)

    return _parse_log_level(default)


def _parse_log_level(level_str: str) -> int:
    """
    Parse log level string to numeric value.

    Args:
        level_str: Log level name (TRACE, DEBUG, INFO, WARN, ERROR)

    Returns:
        Numeric log level
    """
    level_map = {
        "TRACE": TRACE,
        "DEBUG": logging.DEBUG,
        "INFO": logging.INFO,
        "WARN": logging.WARNING,
        "WARNING": logging.WARNING,
        "ERROR": logging.ERROR,
    }
    return level_map.get(level_str.upper(), logging.INFO)


def configure_logging(default_level: str = "INFO") -> None:
    """
    Configure logging system with tiered levels and per-module control.

    Called once at application startup from the FastAPI lifespan.

    Args:
        default_level: Default log level if LOG_LEVEL env var not set
    """
    global_level = os.getenv("LOG_LEVEL", default_level)
    numeric_level = _parse_log_level(global_level)

    logging.basicConfig(
        level=numeric_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    root_logger = logging.getLogger()
    root_logger.info(f"🚀 Logging system initialized (global level: {global_level})")

    # Apply per-module overrides to the loggers that are already named
    module_overrides = []
    for env_var in SERVICE_OVERRIDES:
        override = os.getenv(f"LOG_LEVEL_{env_var}")
        if override:
            module_overrides.append(f"{env_var}={override}")

    for module_name in MODULE_NAME_MAP:
        logging.getLogger(module_name).setLevel(get_log_level(module_name, global_level))

    if module_overrides:
        root_logger.info(f"📋 Module overrides: {', '.join(module_overrides)}")


def get_logger(module_name: str) -> logging.Logger:
    """
    Get a logger for a module with appropriate log level.

    Args:
        module_name: Python module name (use __name__)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(module_name)
    logger.setLevel(get_log_level(module_name))
    return logger
