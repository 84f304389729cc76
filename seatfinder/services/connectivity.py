"""
Connectivity probe for the institution network.
Answers whether the monitored network is reachable via a DNS lookup.
"""

import asyncio
import logging
import socket

logger = logging.getLogger(__name__)


class ConnectivityProbe:
    """Checks that an internal host name resolves from this machine."""

    def __init__(self, host: str, timeout: float = 5.0):
        """
        Initialize connectivity probe.

        Args:
            host: Internal host name that only resolves on the institution network
            timeout: Maximum time to wait for the lookup (in seconds)
        """
        self.host = host
        self.timeout = timeout

    async def is_reachable(self) -> bool:
        """Return True if the host resolves. Never raises."""
        loop = asyncio.get_running_loop()
        try:
            await asyncio.wait_for(
                loop.getaddrinfo(self.host, None, type=socket.SOCK_STREAM),
                timeout=self.timeout,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.debug(f"Lookup of {self.host} failed: {e!r}")
            return False
        return True
