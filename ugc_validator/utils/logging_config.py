"""Logging configuration for the review validation system."""
import json
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Dict, Any

validation_logger = logging.getLogger("ugc_validator.validation_log")


def setup_logging(log_level: str = "INFO", log_file: Optional[Path] = None):
    """Configure logging for the application."""
    formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S'
    )

    logger = logging.getLogger()
    logger.setLevel(getattr(logging, log_level.upper()))

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    return logger


def log_validation_event(
    filename: str,
    size: int,
    dimensions: str,
    result: Dict[str, Any],
    order_id: Optional[str] = None
) -> Dict[str, Any]:
    """Emit one structured VALIDATION_LOG line per analysed image."""
    entry = {
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "orderId": order_id,
        "filename": filename,
        "size": size,
        "dimensions": dimensions,
        "result": {
            "decision": result.get("decision"),
            "score": result.get("score"),
            "people": result.get("people"),
        },
    }
    validation_logger.info("VALIDATION_LOG: %s", json.dumps(entry))
    return entry
