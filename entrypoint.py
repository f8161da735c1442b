"""Run the rooms API under uvicorn with the service's logging configuration."""
import uvicorn

from constants import HOST, LOG_FILE, LOG_LEVEL, PORT, RELOAD
from logging_config import get_logger, setup_logging


def main():
    setup_logging(log_level=LOG_LEVEL, log_file=LOG_FILE)
    logger = get_logger(__name__)
    logger.info(f"Starting ephemeral rooms server on {HOST}:{PORT} (reload={RELOAD})")
    # uvicorn would otherwise install its own handlers over ours
    uvicorn.run("app:app", host=HOST, port=PORT, reload=RELOAD, log_config=None)


if __name__ == "__main__":
    main()
