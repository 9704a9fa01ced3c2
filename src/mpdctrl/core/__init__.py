"""Core support layer.

Classes:
    Gate: FIFO counting gate serializing request/response cycles.
    ConnectionSettings: Plain connection settings value (core.config).
    ServerDiscovery: mDNS browser for MPD daemons (core.discovery).

ServerDiscovery is imported from its module so the protocol core does
not load zeroconf unless it is used.
"""

from mpdctrl.core.gate import Gate

__all__ = ["Gate"]
