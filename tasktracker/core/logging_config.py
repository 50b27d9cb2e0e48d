import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO"):
    """Install the process-wide log format. Safe to call more than once."""
    logging.basicConfig(level=level.upper(), format=LOG_FORMAT, force=True)
    # redis and sqlalchemy are chatty at DEBUG
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("redis").setLevel(logging.WARNING)
