import logging
from pathlib import Path
from typing import Optional

from focus_drift.config.settings import settings

def setup_logging(log_dir: Optional[Path] = None, debug: Optional[bool] = None):
    """Configure logging for the application"""
    # Create logs directory if it doesn't exist
    log_dir = log_dir or settings.LOG_DIR
    log_dir.mkdir(parents=True, exist_ok=True)
    debug = settings.DEBUG if debug is None else debug

    # Configure logging
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_dir / "focus_drift.log"),
            logging.StreamHandler()  # Also log to console
        ]
    )

    logger = logging.getLogger(__name__)
    logger.debug(f"Logging initialized in {log_dir}")
