"""
Table rendering and terminal display.
"""

import sys
from datetime import datetime
from typing import NamedTuple, Sequence, TextIO

from .units import ScaledRate

NAME_WIDTH = 10
# "%10.2f" + 2-char prefix + "bps"
RATE_WIDTH = 15

CURSOR_HOME = "\033[H"
CLEAR_SCREEN = "\033[2J"


class TableRow(NamedTuple):
    name: str
    in_rate: ScaledRate
    out_rate: ScaledRate


def _format_rate(rate: ScaledRate) -> str:
    # Unit choice uses the unrounded value, so 999.999 prints as 1000.00 with no prefix
    return f"{rate.value:10.2f}{rate.prefix:>2}bps"


def render_table(rows: Sequence[TableRow]) -> str:
    """Header line plus one line per row, in the order given."""
    width = max([NAME_WIDTH, len("Interface")] + [len(r.name) for r in rows])
    lines = [f"{'Interface':<{width}} {'In(bps)':>{RATE_WIDTH}} {'Out(bps)':>{RATE_WIDTH}}"]
    for r in rows:
        lines.append(f"{r.name:<{width}} {_format_rate(r.in_rate)} {_format_rate(r.out_rate)}")
    return "\n".join(lines) + "\n"


def render_frame(target: str, fetched_at: datetime, rows: Sequence[TableRow]) -> str:
    banner = f"Fetched from {target} at {fetched_at:%Y-%m-%d %H:%M:%S}"
    return f"{banner}\n\n{render_table(rows)}"


class TerminalDisplay:
    """Writes one frame per tick, redrawing the screen from the top."""

    def __init__(self, stream: TextIO = None, clear_screen: bool = True):
        self.stream = stream if stream is not None else sys.stdout
        self.clear_screen = clear_screen

    def __call__(self, frame: str):
        if self.clear_screen:
            self.stream.write(CURSOR_HOME + CLEAR_SCREEN)
        self.stream.write(frame)
        self.stream.flush()
