"""
Rate calculator.
Turns consecutive raw octet counter samples into bits per second.

Counters are 64-bit (ifHCInOctets / ifHCOutOctets), so every delta is taken
modulo 2**64: a current value below the previous one is a wraparound, and
(cur - prev) % 2**64 is still the number of octets that went by.

The first sample for an interface only establishes a baseline; a rate needs
two samples one interval apart.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from .selector import InterfaceHandle
from .units import ScaledRate, scale

log = logging.getLogger("bwmon.rates")

COUNTER_BITS = 64
COUNTER_MODULUS = 1 << COUNTER_BITS


def counter_delta(previous: int, current: int) -> int:
    """Octets between two readings of a wrapping 64-bit counter."""
    return (current - previous) % COUNTER_MODULUS


@dataclass
class InterfaceState:
    if_id: str
    last_in_octets: int = 0
    last_out_octets: int = 0
    has_baseline: bool = False


@dataclass(frozen=True)
class TrafficReading:
    if_id: str
    in_bps: float
    out_bps: float

    @property
    def in_scaled(self) -> ScaledRate:
        return scale(self.in_bps)

    @property
    def out_scaled(self) -> ScaledRate:
        return scale(self.out_bps)


class RateCalculator:
    """
    Owns the per-interface counter history.

    update() must be called exactly once per interface per sampling interval;
    calling it twice for the same tick would diff a sample against itself.
    """

    def __init__(self, interfaces: Iterable[InterfaceHandle] = ()):
        self._states: dict[str, InterfaceState] = {}
        for handle in interfaces:
            self._states[handle.if_id] = InterfaceState(if_id=handle.if_id)

    def state(self, if_id: str) -> Optional[InterfaceState]:
        return self._states.get(if_id)

    def has_baseline(self, if_id: str) -> bool:
        st = self._states.get(if_id)
        return st is not None and st.has_baseline

    def update(
        self,
        if_id: str,
        raw_in_octets: int,
        raw_out_octets: int,
        interval_seconds: float,
    ) -> Optional[TrafficReading]:
        """
        Record one sample and return the rate since the previous one.
        Returns None on the first sample for if_id.
        """
        raw_in = raw_in_octets % COUNTER_MODULUS
        raw_out = raw_out_octets % COUNTER_MODULUS

        st = self._states.get(if_id)
        if st is None:
            st = self._states[if_id] = InterfaceState(if_id=if_id)

        if not st.has_baseline:
            st.last_in_octets = raw_in
            st.last_out_octets = raw_out
            st.has_baseline = True
            log.debug("Baseline for %s: in=%d out=%d", if_id, raw_in, raw_out)
            return None

        if raw_in < st.last_in_octets:
            log.debug("In counter wrapped on %s: %d -> %d", if_id, st.last_in_octets, raw_in)
        if raw_out < st.last_out_octets:
            log.debug("Out counter wrapped on %s: %d -> %d", if_id, st.last_out_octets, raw_out)

        delta_in = counter_delta(st.last_in_octets, raw_in)
        delta_out = counter_delta(st.last_out_octets, raw_out)

        st.last_in_octets = raw_in
        st.last_out_octets = raw_out

        return TrafficReading(
            if_id=if_id,
            in_bps=delta_in * 8 / interval_seconds,
            out_bps=delta_out * 8 / interval_seconds,
        )
