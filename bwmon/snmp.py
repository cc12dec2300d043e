"""
SNMPv2c sample source.
Walks the IF-MIB ifXTable with GETBULK through pysnmp:

  ifName         1.3.6.1.2.1.31.1.1.1.1.<ifIndex>    OCTET STRING
  ifHCInOctets   1.3.6.1.2.1.31.1.1.1.6.<ifIndex>    Counter64
  ifHCOutOctets  1.3.6.1.2.1.31.1.1.1.10.<ifIndex>   Counter64

The interface id is the instance part of the OID (the ifIndex), taken from
the parsed OID arcs.
"""

import asyncio
import logging
from typing import Any, Iterable, Optional, Sequence

from pysnmp.error import PySnmpError
from pysnmp.hlapi.v3arch.asyncio import (
    CommunityData,
    ContextData,
    ObjectIdentity,
    ObjectType,
    SnmpEngine,
    UdpTransportTarget,
    bulk_walk_cmd,
)
from pysnmp.proto import rfc1902, rfc1905

from .errors import TransportError
from .rates import COUNTER_MODULUS
from .sources import SampleSource

log = logging.getLogger("bwmon.snmp")

OID_IF_NAME = "1.3.6.1.2.1.31.1.1.1.1"
OID_IF_HC_IN_OCTETS = "1.3.6.1.2.1.31.1.1.1.6"
OID_IF_HC_OUT_OCTETS = "1.3.6.1.2.1.31.1.1.1.10"

# v2c exception values that can appear in place of a varbind value
EXCEPTION_TYPES = (rfc1905.NoSuchObject, rfc1905.NoSuchInstance, rfc1905.EndOfMibView)

VarBindRow = tuple[tuple[int, ...], Any]


def parse_oid(oid: str) -> tuple[int, ...]:
    """'1.3.6.1' or '.1.3.6.1' -> (1, 3, 6, 1)"""
    try:
        return tuple(int(p) for p in oid.strip().strip(".").split("."))
    except ValueError:
        raise ValueError(f"invalid OID {oid!r}") from None


def format_oid(arcs: Sequence[int]) -> str:
    return ".".join(str(a) for a in arcs)


def oid_suffix(oid: Sequence[int], root: Sequence[int]) -> str:
    """Instance part of a column OID: (…1.6, 12) under (…1.6) -> '12'"""
    return format_oid(oid[len(root):])


# ─── client ───────────────────────────────────────────────────────────────────

class SnmpClient:
    """
    Blocking facade over pysnmp's asyncio API.
    One event loop and one SnmpEngine live for the life of the client, so
    every walk runs on the loop the engine's transport was opened on.
    """

    def __init__(
        self,
        host: str,
        port: int = 161,
        community: str = "public",
        timeout: float = 1.0,
        retries: int = 3,
        max_repetitions: int = 25,
    ):
        self.host = host
        self.port = port
        self.community = community
        self.timeout = timeout
        self.retries = retries
        self.max_repetitions = max_repetitions

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._engine: Optional[SnmpEngine] = None
        self._transport: Optional[UdpTransportTarget] = None

    @property
    def target(self) -> str:
        return f"{self.host}:{self.port}"

    def connect(self):
        if self._engine is not None:
            return
        self._loop = asyncio.new_event_loop()
        try:
            self._loop.run_until_complete(self._open())
        except (PySnmpError, OSError) as e:
            self.close()
            raise TransportError(f"cannot reach {self.target}: {e}") from e
        log.debug("Connected to %s", self.target)

    async def _open(self):
        # engine and transport belong to this client's loop
        self._engine = SnmpEngine()
        self._transport = await UdpTransportTarget.create(
            (self.host, self.port), timeout=self.timeout, retries=self.retries
        )

    def close(self):
        if self._engine is not None:
            self._engine.close_dispatcher()
            self._engine = None
        if self._loop is not None:
            self._loop.close()
            self._loop = None
        self._transport = None

    def bulk_walk(self, root: str) -> list[VarBindRow]:
        """(oid arcs, value) for every varbind below root, in OID order."""
        self.connect()
        try:
            return self._loop.run_until_complete(self._bulk_walk(root))
        except PySnmpError as e:
            raise TransportError(f"walk of {root} on {self.target} failed: {e}") from e

    async def _bulk_walk(self, root: str) -> list[VarBindRow]:
        rows = []
        async for error_indication, error_status, error_index, var_binds in bulk_walk_cmd(
            self._engine,
            CommunityData(self.community, mpModel=1),  # v2c
            self._transport,
            ContextData(),
            0,
            self.max_repetitions,
            ObjectType(ObjectIdentity(root)),
            lexicographicMode=False,
            lookupMib=False,
        ):
            if error_indication:
                raise TransportError(f"{self.target}: {error_indication}")
            if error_status:
                raise TransportError(
                    f"{self.target} returned error-status {int(error_status)} "
                    f"(index {int(error_index)})"
                )
            for name, value in var_binds:
                if isinstance(value, EXCEPTION_TYPES):
                    continue
                rows.append((tuple(name), value))
        log.debug("Walked %s on %s: %d varbind(s)", root, self.target, len(rows))
        return rows


# ─── sample source ────────────────────────────────────────────────────────────

class SnmpSampleSource(SampleSource):
    """Reads ifName and the 64-bit ifHC octet counters from the ifXTable."""

    def __init__(self, client: SnmpClient):
        self.client = client

    def list_interfaces(self) -> list[tuple[str, str]]:
        root = parse_oid(OID_IF_NAME)
        interfaces = []
        for oid, value in self.client.bulk_walk(OID_IF_NAME):
            if not isinstance(value, rfc1902.OctetString):
                raise TransportError(f"ifName {format_oid(oid)} is not an OCTET STRING")
            name = value.asOctets().decode("utf-8", "replace")
            interfaces.append((oid_suffix(oid, root), name))
        log.info("Discovered %d interface(s) on %s", len(interfaces), self.client.target)
        return interfaces

    def fetch_counters(self, if_ids: Iterable[str]) -> dict[str, tuple[int, int]]:
        wanted = set(if_ids)
        if not wanted:
            return {}
        in_octets = self._walk_column(OID_IF_HC_IN_OCTETS, wanted)
        out_octets = self._walk_column(OID_IF_HC_OUT_OCTETS, wanted)
        return {
            if_id: (in_octets[if_id], out_octets[if_id])
            for if_id in wanted
            if if_id in in_octets and if_id in out_octets
        }

    def _walk_column(self, column: str, wanted: set[str]) -> dict[str, int]:
        root = parse_oid(column)
        values = {}
        for oid, value in self.client.bulk_walk(column):
            if_id = oid_suffix(oid, root)
            if if_id not in wanted:
                continue
            if not isinstance(value, rfc1902.Counter64) or not 0 <= int(value) < COUNTER_MODULUS:
                raise TransportError(f"{format_oid(oid)} is not a valid Counter64")
            values[if_id] = int(value)
        return values

    def close(self):
        self.client.close()
