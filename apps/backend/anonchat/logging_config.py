import logging

LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Configure root logging once for the API process."""
    logging.basicConfig(level=level, format=LOG_FORMAT)
    # uvicorn's access log is noisy for websocket-heavy traffic
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
