import logging
import os


def setup_logging(level: str | None = None) -> None:
    """Configure the root logger once; LOG_LEVEL from settings or env, default INFO."""
    log_level = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
