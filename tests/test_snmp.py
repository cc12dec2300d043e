"""
Tests for the SNMP sample source and its pysnmp client wrapper.
Run with: python -m pytest tests/ -v
"""

import pytest
from pysnmp.proto import rfc1902, rfc1905

import bwmon.snmp as snmp
from bwmon.errors import TransportError
from bwmon.snmp import (
    OID_IF_HC_IN_OCTETS,
    OID_IF_HC_OUT_OCTETS,
    OID_IF_NAME,
    SnmpClient,
    SnmpSampleSource,
    format_oid,
    oid_suffix,
    parse_oid,
)


IF_NAME = parse_oid(OID_IF_NAME)
IF_IN = parse_oid(OID_IF_HC_IN_OCTETS)
IF_OUT = parse_oid(OID_IF_HC_OUT_OCTETS)


class FakeClient:
    """Serves bulk_walk from {column: [(oid, value), ...]}; records each walk."""

    target = "fake:161"

    def __init__(self, columns: dict):
        self.columns = columns
        self.walks = []
        self.closed = False

    def bulk_walk(self, root):
        self.walks.append(root)
        return list(self.columns.get(root, []))

    def close(self):
        self.closed = True


def _columns(interfaces: dict[int, tuple[str, int, int]]) -> dict:
    """{ifIndex: (name, in_octets, out_octets)} -> walk results per column"""
    return {
        OID_IF_NAME: [
            (IF_NAME + (i,), rfc1902.OctetString(name.encode()))
            for i, (name, _, _) in interfaces.items()
        ],
        OID_IF_HC_IN_OCTETS: [
            (IF_IN + (i,), rfc1902.Counter64(in_octets))
            for i, (_, in_octets, _) in interfaces.items()
        ],
        OID_IF_HC_OUT_OCTETS: [
            (IF_OUT + (i,), rfc1902.Counter64(out_octets))
            for i, (_, _, out_octets) in interfaces.items()
        ],
    }


# ─── OIDs ────────────────────────────────────────────────────────────────────

class TestOidParsing:
    @pytest.mark.parametrize("text", ["1.3.6.1.2.1", ".1.3.6.1.2.1", " 1.3.6.1.2.1 "])
    def test_parse_forms(self, text):
        assert parse_oid(text) == (1, 3, 6, 1, 2, 1)

    @pytest.mark.parametrize("bad", ["", "1.x.3", "1..3"])
    def test_invalid(self, bad):
        with pytest.raises(ValueError):
            parse_oid(bad)

    def test_format(self):
        assert format_oid((1, 3, 6, 1)) == "1.3.6.1"

    def test_suffix_is_instance_part(self):
        assert oid_suffix(IF_IN + (12,), IF_IN) == "12"


# ─── sample source ───────────────────────────────────────────────────────────

class TestSnmpSampleSource:
    def test_list_interfaces(self):
        client = FakeClient(_columns({1: ("wan1", 0, 0), 2: ("lan1", 0, 0), 10: ("ha1", 0, 0)}))
        source = SnmpSampleSource(client)
        assert source.list_interfaces() == [("1", "wan1"), ("2", "lan1"), ("10", "ha1")]
        assert client.walks == [OID_IF_NAME]

    def test_undecodable_name_is_replaced(self):
        client = FakeClient({OID_IF_NAME: [(IF_NAME + (3,), rfc1902.OctetString(b"port\xff"))]})
        assert SnmpSampleSource(client).list_interfaces() == [("3", "port\ufffd")]

    def test_non_string_name_rejected(self):
        client = FakeClient({OID_IF_NAME: [(IF_NAME + (1,), rfc1902.Integer(7))]})
        with pytest.raises(TransportError, match="OCTET STRING"):
            SnmpSampleSource(client).list_interfaces()

    def test_fetch_only_requested(self):
        client = FakeClient(_columns({1: ("wan1", 100, 200), 2: ("lan1", 300, 400), 3: ("ha1", 5, 6)}))
        counters = SnmpSampleSource(client).fetch_counters(["1", "3"])
        assert counters == {"1": (100, 200), "3": (5, 6)}
        assert client.walks == [OID_IF_HC_IN_OCTETS, OID_IF_HC_OUT_OCTETS]

    def test_counters_are_plain_ints(self):
        client = FakeClient(_columns({1: ("wan1", 2**64 - 1, 0)}))
        in_octets, out_octets = SnmpSampleSource(client).fetch_counters(["1"])["1"]
        assert type(in_octets) is int and in_octets == 2**64 - 1
        assert type(out_octets) is int

    def test_fetch_nothing_walks_nothing(self):
        client = FakeClient(_columns({1: ("wan1", 1, 1)}))
        assert SnmpSampleSource(client).fetch_counters([]) == {}
        assert client.walks == []

    def test_interface_missing_from_one_column_is_omitted(self):
        columns = _columns({1: ("wan1", 1, 1), 2: ("lan1", 2, 2)})
        columns[OID_IF_HC_OUT_OCTETS] = columns[OID_IF_HC_OUT_OCTETS][:1]
        counters = SnmpSampleSource(FakeClient(columns)).fetch_counters(["1", "2"])
        assert counters == {"1": (1, 1)}

    @pytest.mark.parametrize("value", [
        rfc1902.Counter32(1),
        rfc1902.Gauge32(1),
        rfc1902.OctetString(b"1"),
    ])
    def test_non_counter64_rejected(self, value):
        columns = _columns({1: ("wan1", 1, 1)})
        columns[OID_IF_HC_IN_OCTETS] = [(IF_IN + (1,), value)]
        with pytest.raises(TransportError, match="Counter64"):
            SnmpSampleSource(FakeClient(columns)).fetch_counters(["1"])

    def test_bad_value_for_unrequested_interface_ignored(self):
        columns = _columns({1: ("wan1", 1, 1)})
        columns[OID_IF_HC_IN_OCTETS].append((IF_IN + (9,), rfc1902.Counter32(1)))
        assert SnmpSampleSource(FakeClient(columns)).fetch_counters(["1"]) == {"1": (1, 1)}

    def test_close_closes_client(self):
        client = FakeClient({})
        SnmpSampleSource(client).close()
        assert client.closed


# ─── client ──────────────────────────────────────────────────────────────────

def _fake_walk(*responses, calls=None):
    """Stand-in for pysnmp's bulk_walk_cmd yielding the given response tuples."""

    async def bulk_walk_cmd(engine, auth, transport, context, non_repeaters,
                            max_repetitions, *var_binds, **options):
        if calls is not None:
            calls.append({
                "community": auth.communityName,
                "max_repetitions": max_repetitions,
                "options": options,
            })
        for response in responses:
            yield response

    return bulk_walk_cmd


@pytest.fixture
def client():
    c = SnmpClient("127.0.0.1", 16161, community="s3cret", timeout=0.2, retries=0,
                   max_repetitions=7)
    yield c
    c.close()


class TestSnmpClient:
    def test_target_label(self):
        assert SnmpClient("10.0.0.1", 1161).target == "10.0.0.1:1161"

    def test_rows_are_arcs_and_values(self, client, monkeypatch):
        calls = []
        monkeypatch.setattr(snmp, "bulk_walk_cmd", _fake_walk(
            (None, 0, 0, [(rfc1902.ObjectName(IF_IN + (1,)), rfc1902.Counter64(10))]),
            (None, 0, 0, [(rfc1902.ObjectName(IF_IN + (2,)), rfc1902.Counter64(20))]),
            calls=calls,
        ))
        rows = client.bulk_walk(OID_IF_HC_IN_OCTETS)
        assert [oid for oid, _ in rows] == [IF_IN + (1,), IF_IN + (2,)]
        assert [int(v) for _, v in rows] == [10, 20]
        assert str(calls[0]["community"]) == "s3cret"
        assert calls[0]["max_repetitions"] == 7
        assert calls[0]["options"]["lexicographicMode"] is False

    def test_exception_values_skipped(self, client, monkeypatch):
        monkeypatch.setattr(snmp, "bulk_walk_cmd", _fake_walk(
            (None, 0, 0, [
                (rfc1902.ObjectName(IF_IN + (1,)), rfc1902.Counter64(10)),
                (rfc1902.ObjectName(IF_IN + (2,)), rfc1905.endOfMibView),
            ]),
        ))
        assert [oid for oid, _ in client.bulk_walk(OID_IF_HC_IN_OCTETS)] == [IF_IN + (1,)]

    def test_error_indication_raises(self, client, monkeypatch):
        monkeypatch.setattr(snmp, "bulk_walk_cmd", _fake_walk(
            ("No SNMP response received before timeout", 0, 0, []),
        ))
        with pytest.raises(TransportError, match="No SNMP response"):
            client.bulk_walk(OID_IF_NAME)

    def test_error_status_raises(self, client, monkeypatch):
        monkeypatch.setattr(snmp, "bulk_walk_cmd", _fake_walk((None, 5, 1, [])))
        with pytest.raises(TransportError, match="error-status 5"):
            client.bulk_walk(OID_IF_NAME)

    def test_library_error_mapped(self, client, monkeypatch):
        async def broken(*args, **kwargs):
            raise snmp.PySnmpError("bad OID")
            yield

        monkeypatch.setattr(snmp, "bulk_walk_cmd", broken)
        with pytest.raises(TransportError, match="bad OID"):
            client.bulk_walk(OID_IF_NAME)

    def test_close_is_idempotent(self, client, monkeypatch):
        monkeypatch.setattr(snmp, "bulk_walk_cmd", _fake_walk())
        client.bulk_walk(OID_IF_NAME)
        client.close()
        client.close()
