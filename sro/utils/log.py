import logging
import sys

PLAIN_FORMAT = "[%(asctime)s] %(name)-20.20s [%(levelname)-8.8s] %(message)s"
FULL_FORMAT = "[%(asctime)s] [%(threadName)s] %(name)s [%(levelname)s] %(message)s"

_FORMATS = {
    "plain": PLAIN_FORMAT,
    "full": FULL_FORMAT,
}


class WatchRestartLogFilter(logging.Filter):
    def filter(self, record):
        """Watch streams reopen every timeout period, which is noisy."""
        return "Watch stream closed" not in record.getMessage()


def setup_logging(level: str = "INFO", fmt: str = "plain") -> None:
    """Configure the root logger for the operator process."""
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMATS.get(fmt, PLAIN_FORMAT)))
    handler.addFilter(WatchRestartLogFilter())
    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level.upper() if isinstance(level, str) else level)
    # The kubernetes client logs every request body at DEBUG
    logging.getLogger("kubernetes").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)
