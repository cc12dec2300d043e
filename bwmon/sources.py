"""
Sample source interface.
A sample source discovers interfaces and returns raw 64-bit octet counters
keyed by interface id. Failures are raised as TransportError.
"""

from typing import Iterable


class SampleSource:
    """Base class for counter sources."""

    def list_interfaces(self) -> list[tuple[str, str]]:
        """Return (if_id, name) for every interface the device reports."""
        raise NotImplementedError

    def fetch_counters(self, if_ids: Iterable[str]) -> dict[str, tuple[int, int]]:
        """Return {if_id: (in_octets, out_octets)} for the requested ids."""
        raise NotImplementedError

    def close(self):
        pass
