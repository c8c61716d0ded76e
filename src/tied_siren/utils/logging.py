import sys

from loguru import logger

from tied_siren.settings import settings

CONSOLE_FORMAT = "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | {message}"
# CLI commands and the daemon append to the same file.
FILE_FORMAT = "{time:YYYY-MM-DD HH:mm:ss} | {process} | {level: <8} | {name}:{function} | {message}"
LOG_FILE_NAME = "tied_siren.log"


def setup_logging(verbose: bool = False) -> None:
    """Sends logs to stderr and to a rotating file in `settings.log_dir`.

    DEBUG when `verbose` or `settings.debug`, INFO otherwise.
    """
    level = "DEBUG" if verbose or settings.debug else "INFO"

    logger.remove()
    logger.add(sys.stderr, level=level, format=CONSOLE_FORMAT)

    settings.log_dir.mkdir(parents=True, exist_ok=True)
    log_file = settings.log_dir / LOG_FILE_NAME
    logger.add(
        log_file,
        level=level,
        format=FILE_FORMAT,
        rotation="10 MB",
        retention="10 days",
        compression="zip",
        enqueue=True,
    )
    logger.debug(f"Logging to {log_file}")
