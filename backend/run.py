"""
Entrypoint script for container deployment.
Binds uvicorn to the configured PORT after checking it is free.
"""
import socket

import uvicorn

from codereview.config import settings
from codereview.utils.logger import setup_logging, get_logger


def _is_port_available(host: str, port: int) -> bool:
    """Check if a port is available before starting uvicorn."""
    try:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
            s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            s.bind((host, port))
            return True
    except OSError:
        return False


if __name__ == "__main__":
    setup_logging(debug=settings.debug)
    logger = get_logger("run")

    if not _is_port_available(settings.host, settings.port):
        # Webhook deliveries would silently go to the other process.
        logger.error("port_in_use", host=settings.host, port=settings.port)
        raise SystemExit(1)

    logger.info("starting_uvicorn", host=settings.host, port=settings.port)
    uvicorn.run("codereview.main:app", host=settings.host, port=settings.port)
