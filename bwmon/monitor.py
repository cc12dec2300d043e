"""
Bandwidth monitor engine.
Drives the fixed-interval poll loop: fetch counters, compute rates, render,
sleep.

  IDLE ──start()──▶ BASELINE ──first poll──▶ STEADY ◀─┐
                                               └──────┘ one poll per interval
  any state ──TransportError──▶ TERMINATED
"""

import enum
import logging
import time
from datetime import datetime
from typing import Callable, Iterable, Optional

from .errors import TransportError
from .rates import RateCalculator
from .selector import InterfaceHandle, Pattern, compile_patterns, select_interfaces
from .sources import SampleSource
from .table import TableRow, render_frame
from .units import format_rate

log = logging.getLogger("bwmon.monitor")


class MonitorState(enum.Enum):
    IDLE = "idle"
    BASELINE = "baseline"
    STEADY = "steady"
    TERMINATED = "terminated"


def interface_sort_key(if_id: str) -> tuple:
    """Numeric ids first in numeric order, anything else after, by text."""
    try:
        return (0, int(if_id), if_id)
    except ValueError:
        return (1, 0, if_id)


class BandwidthMonitor:
    def __init__(
        self,
        source: SampleSource,
        patterns: Iterable[Pattern],
        interval_seconds: int,
        display: Callable[[str], None],
        target: str = "",
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
        now: Callable[[], datetime] = datetime.now,
    ):
        # Bad patterns must fail here, before the source is touched.
        self.patterns = compile_patterns(patterns)
        self.source = source
        self.interval_seconds = interval_seconds
        self.display = display
        self.target = target

        self._sleep = sleep
        self._clock = clock
        self._now = now
        self._running = False

        self.state = MonitorState.IDLE
        self.interfaces: list[InterfaceHandle] = []
        self.calculator = RateCalculator()

        log.info(
            "Bandwidth monitor initialized → %s | interval=%ds | patterns=%s",
            target or "(unnamed source)",
            interval_seconds,
            [p.pattern for p in self.patterns],
        )

    # ─── public API ──────────────────────────────────────────────────────────

    def start(self, ticks: Optional[int] = None):
        """
        Select interfaces and run the poll loop until stop() is called.
        ticks limits the number of polls, the baseline poll included.
        """
        self.select()
        self._running = True
        log.info("Starting bandwidth monitor...")
        self._run_loop(ticks)

    def stop(self):
        self._running = False
        log.info("Bandwidth monitor stopped.")

    def select(self) -> list[InterfaceHandle]:
        try:
            discovered = self.source.list_interfaces()
        except TransportError as e:
            self._terminate(e)
            raise

        selected = select_interfaces(discovered, self.patterns)
        self.interfaces = sorted(selected, key=lambda h: interface_sort_key(h.if_id))
        self.calculator = RateCalculator(self.interfaces)

        if not self.interfaces:
            log.warning(
                "No interface matched %s; the table will stay empty",
                [p.pattern for p in self.patterns],
            )
        else:
            log.info("Monitoring %d of %d interface(s)", len(self.interfaces), len(discovered))

        self.state = MonitorState.BASELINE
        return self.interfaces

    def poll(self) -> list[TableRow]:
        """
        One fetch-and-update pass over every monitored interface.
        Returns the table rows in display order; empty on the baseline pass.
        """
        if_ids = [h.if_id for h in self.interfaces]
        try:
            counters = self.source.fetch_counters(if_ids)
            missing = [i for i in if_ids if i not in counters]
            if missing:
                raise TransportError(f"no counters returned for interface(s) {', '.join(missing)}")
        except TransportError as e:
            self._terminate(e)
            raise

        rows = []
        for handle in self.interfaces:
            in_octets, out_octets = counters[handle.if_id]
            reading = self.calculator.update(
                handle.if_id, in_octets, out_octets, self.interval_seconds
            )
            if reading is None:
                continue
            log.debug(
                "%s: in=%s out=%s",
                handle.name, format_rate(reading.in_bps), format_rate(reading.out_bps),
            )
            rows.append(TableRow(handle.name, reading.in_scaled, reading.out_scaled))

        if self.state is MonitorState.BASELINE:
            self.state = MonitorState.STEADY
            log.info("Baseline recorded for %d interface(s)", len(self.interfaces))

        return rows

    # ─── main loop ───────────────────────────────────────────────────────────

    def _run_loop(self, ticks: Optional[int]):
        next_tick = self._clock()
        done = 0

        while self._running:
            render = self.state is MonitorState.STEADY
            rows = self.poll()
            if render:
                self.display(render_frame(self.target, self._now(), rows))

            done += 1
            if ticks is not None and done >= ticks:
                break

            # Sleep out the remainder of the interval
            next_tick += self.interval_seconds
            self._sleep(max(0.0, next_tick - self._clock()))

        self._running = False

    def _terminate(self, error: Exception):
        self.state = MonitorState.TERMINATED
        self._running = False
        log.info("Monitor terminated: %s", error)
