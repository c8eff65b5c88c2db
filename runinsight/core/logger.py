"""Loguru setup shared by the insight API, the tool server and the CLI.

Every record carries a ``component`` label so the API and tool server logs
stay distinguishable when both run in one terminal.
"""

import logging
import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[component]}</magenta> | "
    "<cyan>{name}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {extra[component]} | {name}:{function}:{line} - {message}"

# httpx logs every request at INFO; Strava pagination makes that noise
QUIET_LIBRARIES = ("httpx", "httpcore")


def setup_logger(
    level: str = "INFO",
    log_file: str | None = None,
    component: str = "runinsight",
    rotation: str = "10 MB",
    retention: str = "7 days",
) -> None:
    """Configure loguru with a console sink and an optional rotating file sink.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Optional log file path; console only when None
        component: Label attached to every record (api, tools, cli)
        rotation: File rotation size or interval
        retention: How long rotated files are kept
    """
    logger.remove()
    logger.configure(extra={"component": component})
    logger.add(sys.stderr, format=CONSOLE_FORMAT, level=level, colorize=True)

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            format=FILE_FORMAT,
            level=level,
            rotation=rotation,
            retention=retention,
            compression="zip",
            encoding="utf-8",
            diagnose=False,
        )

    library_level = logging.DEBUG if level == "DEBUG" else logging.WARNING
    for name in QUIET_LIBRARIES:
        logging.getLogger(name).setLevel(library_level)

    logger.info(f"Logger initialized (level={level}, component={component}, file={log_file})")
