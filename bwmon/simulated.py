"""
Simulated sample source.
Keeps per-interface 64-bit octet counters and advances them by the elapsed
time at a configured link utilization, so the monitor can run without a
device.
"""

import logging
import random
import time
from dataclasses import dataclass
from typing import Callable, Iterable, Optional

from .sources import SampleSource

log = logging.getLogger("bwmon.simulated")

COUNTER_MASK = 0xFFFF_FFFF_FFFF_FFFF

DEFAULT_INTERFACES = [
    {"index": 1, "name": "wan1", "speed": 1_000_000_000, "utilization": 0.2},
    {"index": 2, "name": "lan1", "speed": 1_000_000_000, "utilization": 0.05},
]


@dataclass
class SimulatedInterface:
    if_index: int
    name: str
    if_speed: int = 1_000_000_000  # 1 Gbps
    utilization: float = 0.1

    in_octets: int = 0
    out_octets: int = 0

    def tick(self, elapsed_seconds: float, rng: random.Random):
        """Advance both counters by one interval of traffic (0.0-1.0 utilization)."""
        bytes_per_tick = self.if_speed * self.utilization * elapsed_seconds / 8

        in_bytes = int(bytes_per_tick * rng.uniform(0.4, 0.6))
        out_bytes = int(bytes_per_tick - in_bytes)

        self.in_octets = (self.in_octets + in_bytes) & COUNTER_MASK
        self.out_octets = (self.out_octets + out_bytes) & COUNTER_MASK


class SimulatedSampleSource(SampleSource):
    def __init__(
        self,
        interface_configs: Optional[list[dict]] = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Optional[random.Random] = None,
    ):
        self._clock = clock
        self._rng = rng or random.Random()
        self.interfaces: dict[str, SimulatedInterface] = {}

        for cfg in interface_configs or DEFAULT_INTERFACES:
            idx = cfg["index"]
            self.interfaces[str(idx)] = SimulatedInterface(
                if_index=idx,
                name=cfg.get("name", f"if{idx}"),
                if_speed=cfg.get("speed", 1_000_000_000),
                utilization=cfg.get("utilization", 0.1),
                in_octets=cfg.get("in_octets", 0) & COUNTER_MASK,
                out_octets=cfg.get("out_octets", 0) & COUNTER_MASK,
            )
        self._last_tick = self._clock()

        log.info("Simulating %d interface(s)", len(self.interfaces))

    def list_interfaces(self) -> list[tuple[str, str]]:
        return [(if_id, iface.name) for if_id, iface in self.interfaces.items()]

    def fetch_counters(self, if_ids: Iterable[str]) -> dict[str, tuple[int, int]]:
        now = self._clock()
        elapsed = max(0.0, now - self._last_tick)
        self._last_tick = now

        for iface in self.interfaces.values():
            iface.tick(elapsed, self._rng)

        return {
            if_id: (self.interfaces[if_id].in_octets, self.interfaces[if_id].out_octets)
            for if_id in if_ids
            if if_id in self.interfaces
        }
