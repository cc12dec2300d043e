"""
Interface selection.
Matches discovered interface names against the user's patterns and produces
the fixed set of interfaces monitored for the whole run.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Union

from .errors import InvalidPatternError

log = logging.getLogger("bwmon.selector")

Pattern = Union[str, re.Pattern]


@dataclass(frozen=True)
class InterfaceHandle:
    if_id: str     # opaque id from the sample source (ifIndex for SNMP)
    name: str      # display name, fixed at selection time


def parse_pattern_list(text: str) -> list[str]:
    """Split a comma-separated pattern list, dropping empty fields."""
    return [p for p in text.split(",") if p]


def compile_patterns(patterns: Iterable[Pattern]) -> list[re.Pattern]:
    """
    Compile every pattern in order.
    Raises InvalidPatternError on the first pattern that does not compile.
    """
    compiled = []
    for p in patterns:
        if isinstance(p, re.Pattern):
            compiled.append(p)
            continue
        try:
            compiled.append(re.compile(p))
        except re.error as e:
            raise InvalidPatternError(p, str(e)) from e
    return compiled


def select_interfaces(
    discovered: Iterable[tuple[str, str]],
    patterns: Iterable[Pattern],
) -> list[InterfaceHandle]:
    """
    Return the discovered (if_id, name) pairs whose name matches any pattern.

    Patterns are tried in the order given and the first match wins. Matching
    is unanchored, so "port" selects "port1" and "export0" alike; use "^" and
    "$" for exact names. Each id is selected at most once.
    """
    compiled = compile_patterns(patterns)
    selected: list[InterfaceHandle] = []
    seen: set[str] = set()

    for if_id, name in discovered:
        if if_id in seen:
            continue
        for rx in compiled:
            if rx.search(name):
                selected.append(InterfaceHandle(if_id=if_id, name=name))
                seen.add(if_id)
                log.debug("Selected interface %s (%s) via %r", name, if_id, rx.pattern)
                break

    return selected
