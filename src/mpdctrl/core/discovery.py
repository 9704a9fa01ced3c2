"""mDNS/Zeroconf discovery for MPD daemons.

MPD announces itself as ``_mpd._tcp`` when built with zeroconf support and
``zeroconf_enabled`` is set in mpd.conf. The advertised port is the control
port, so a DiscoveredServer can be passed straight to MpdClient.
"""

from __future__ import annotations

import ipaddress
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass, field

from zeroconf import ServiceBrowser, ServiceListener, Zeroconf

from mpdctrl.api.mpd.transport import DEFAULT_PORT

logger = logging.getLogger(__name__)

MPD_SERVICE_TYPE = "_mpd._tcp.local."

FoundHandler = Callable[["DiscoveredServer"], None]
RemovedHandler = Callable[[str], None]


@dataclass
class DiscoveredServer:
    """An MPD daemon seen on the network.

    Attributes:
        name: Full mDNS service name.
        host: Address to connect to (first IPv4 address when there is one).
        port: Control port.
        addresses: Every advertised address.
        hostname: Host FQDN without the trailing dot, e.g. "musicbox.local".
    """

    name: str
    host: str
    port: int
    addresses: list[str] = field(default_factory=list)
    hostname: str = ""

    @property
    def display_name(self) -> str:
        """Return the instance name without the service type suffix."""
        suffix = f".{MPD_SERVICE_TYPE}"
        name = self.name[: -len(suffix)] if self.name.endswith(suffix) else self.name
        return name or self.host


def _ipv4_first(addresses: list[str]) -> list[str]:
    """Order addresses so IPv4 ones come first, keeping relative order."""

    def is_ipv6(address: str) -> bool:
        try:
            return ipaddress.ip_address(address.split("%", 1)[0]).version == 6
        except ValueError:
            return True

    return sorted(addresses, key=is_ipv6)


class MpdServiceListener(ServiceListener):
    """Tracks ``_mpd._tcp`` announcements and reports changes."""

    def __init__(
        self,
        on_found: FoundHandler | None = None,
        on_removed: RemovedHandler | None = None,
    ) -> None:
        """Initialize the listener.

        Args:
            on_found: Called with each resolved daemon (also on updates).
            on_removed: Called with the service name of a daemon that left.
        """
        self._on_found = on_found
        self._on_removed = on_removed
        self._servers: dict[str, DiscoveredServer] = {}

    @property
    def servers(self) -> list[DiscoveredServer]:
        """Return the daemons currently announced."""
        return list(self._servers.values())

    def add_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        """Resolve an announced service and record it."""
        info = zc.get_service_info(type_, name)
        if info is None:
            logger.debug("Could not resolve service %s", name)
            return

        addresses = _ipv4_first(info.parsed_scoped_addresses())
        if not addresses:
            logger.debug("Service %s has no addresses", name)
            return

        server = DiscoveredServer(
            name=name,
            host=addresses[0],
            port=info.port or DEFAULT_PORT,
            addresses=addresses,
            hostname=info.server.rstrip(".") if info.server else "",
        )
        self._servers[name] = server
        logger.info("Discovered MPD: %s at %s:%d", server.display_name, server.host, server.port)

        if self._on_found:
            self._on_found(server)

    def remove_service(self, zc: Zeroconf, type_: str, name: str) -> None:  # noqa: ARG002
        """Forget a service that was withdrawn."""
        if self._servers.pop(name, None) is None:
            return
        logger.info("MPD removed: %s", name)
        if self._on_removed:
            self._on_removed(name)

    def update_service(self, zc: Zeroconf, type_: str, name: str) -> None:
        """Re-resolve a service whose records changed."""
        self.add_service(zc, type_, name)


class ServerDiscovery:
    """Browses the local network for MPD daemons.

    Discovery only finds candidates; connecting is left to the caller.

    Example:
        server = ServerDiscovery.discover_one(timeout=5.0)
        if server:
            client = MpdClient(server.host, server.port)
    """

    def __init__(self) -> None:
        self._zeroconf: Zeroconf | None = None
        self._browser: ServiceBrowser | None = None
        self._listener: MpdServiceListener | None = None

    @property
    def servers(self) -> list[DiscoveredServer]:
        """Return the daemons seen so far."""
        return self._listener.servers if self._listener else []

    @property
    def is_running(self) -> bool:
        """Return True while browsing."""
        return self._zeroconf is not None

    def start(
        self,
        on_found: FoundHandler | None = None,
        on_removed: RemovedHandler | None = None,
    ) -> None:
        """Start browsing in zeroconf's background thread.

        Callbacks run on that thread, not on an asyncio loop. Calling start()
        while running does nothing.
        """
        if self._zeroconf is not None:
            return

        self._zeroconf = Zeroconf()
        self._listener = MpdServiceListener(on_found=on_found, on_removed=on_removed)
        self._browser = ServiceBrowser(self._zeroconf, MPD_SERVICE_TYPE, self._listener)
        logger.debug("Browsing for %s", MPD_SERVICE_TYPE)

    def stop(self) -> None:
        """Stop browsing and release the zeroconf sockets."""
        if self._browser:
            self._browser.cancel()
            self._browser = None
        if self._zeroconf:
            self._zeroconf.close()
            self._zeroconf = None
        self._listener = None
        logger.debug("Stopped browsing for %s", MPD_SERVICE_TYPE)

    @classmethod
    def _browse(cls, timeout: float, first_only: bool) -> list[DiscoveredServer]:
        """Browse for ``timeout`` seconds, or until the first hit if ``first_only``."""
        found = threading.Event()
        discovery = cls()
        discovery.start(on_found=(lambda _: found.set()) if first_only else None)
        try:
            found.wait(timeout=timeout)
            return discovery.servers
        finally:
            discovery.stop()

    @classmethod
    def discover_one(cls, timeout: float = 5.0) -> DiscoveredServer | None:
        """Block until one daemon is found.

        Args:
            timeout: Maximum time to wait in seconds.

        Returns:
            The first daemon found, or None on timeout.
        """
        servers = cls._browse(timeout, first_only=True)
        return servers[0] if servers else None

    @classmethod
    def discover_all(cls, timeout: float = 5.0) -> list[DiscoveredServer]:
        """Collect every daemon that answers within ``timeout`` seconds."""
        return cls._browse(timeout, first_only=False)
