import logging
import sys

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
_NOISY_LOGGERS = ("sqlalchemy.engine", "urllib3", "httpx", "httpcore", "redis")
_HANDLER_NAME = "journal-analytics-stdout"


def setup_logging(level: int | str = logging.INFO) -> None:
    """Send application logs to stdout; calling it again only adjusts the level."""
    root_logger = logging.getLogger()
    root_logger.setLevel(level.upper() if isinstance(level, str) else level)
    if any(handler.get_name() == _HANDLER_NAME for handler in root_logger.handlers):
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    root_logger.addHandler(handler)

    # Ledger and cache clients log every request at INFO
    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
