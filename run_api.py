"""Start the review validation API under uvicorn."""
import logging
import os
import signal
import sys

import uvicorn
from dotenv import load_dotenv

from ugc_validator.utils.logging_config import setup_logging

load_dotenv()

logger = logging.getLogger("ugc_validator.server")


def handle_shutdown(sig, frame):
    logger.info(f"Received signal {sig}, shutting down review validation API")
    sys.exit(0)


if __name__ == "__main__":
    signal.signal(signal.SIGINT, handle_shutdown)
    signal.signal(signal.SIGTERM, handle_shutdown)

    log_level = os.getenv("LOG_LEVEL", "INFO")
    setup_logging(log_level)

    host = os.getenv("HOST", "0.0.0.0")
    port = int(os.getenv("PORT", "8000"))
    logger.info(f"Serving review validation API on {host}:{port}")

    try:
        uvicorn.run(
            "ugc_validator.api.app:app",
            host=host,
            port=port,
            reload=os.getenv("RELOAD", "false").lower() == "true",
            log_level=log_level.lower(),
        )
    except Exception as e:
        logger.error(f"Server error: {e}", exc_info=True)
        sys.exit(1)
