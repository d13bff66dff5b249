"""Port selection for the dashboard server."""

from __future__ import annotations

import logging
import socket

logger = logging.getLogger(__name__)

# Port range for auto-selection
DEFAULT_PORT = 8766
PORT_RANGE = 20


def is_port_in_use(host: str, port: int) -> bool:
    """Check if a port is currently bound."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.settimeout(1)
    try:
        sock.connect((host, port))
        return True
    except OSError:
        return False
    finally:
        sock.close()


def find_available_port(host: str, preferred_port: int = DEFAULT_PORT) -> int:
    """Return *preferred_port* if free, else the next free one.

    Raises RuntimeError if every port in the range is taken.
    """
    for port in range(preferred_port, preferred_port + PORT_RANGE + 1):
        if not is_port_in_use(host, port):
            if port != preferred_port:
                logger.debug("Port %d in use, picked %d", preferred_port, port)
            return port
    raise RuntimeError(
        f"No available ports in range {preferred_port}-{preferred_port + PORT_RANGE}. "
        "Stop some servers and try again."
    )
