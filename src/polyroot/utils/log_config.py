import logging
import sys

LOGGER_NAME = "polyroot"


def setup_logging(level=logging.INFO, format_string='%(asctime)s - %(name)s - %(levelname)s - %(message)s', stream=sys.stdout):
    """Configures basic logging to stdout and returns the package logger."""
    logging.basicConfig(
        level=level,
        format=format_string,
        stream=stream
    )
    pkg_logger = logging.getLogger(LOGGER_NAME)
    pkg_logger.setLevel(level)
    return pkg_logger


# Setup logging when this module is imported
logger = setup_logging()
