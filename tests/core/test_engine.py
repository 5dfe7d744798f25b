from dnids.core.engine import detect_alerts
from dnids.core.models import BYTES, FLOWS, PACKETS, TrafficTotals
from dnids.core.protocol import parse_report


def test_same_flow_counts_once_per_timeslice(engine, make_packet):
    engine.ingest(make_packet(size=100))
    engine.ingest(make_packet(size=250))

    traffic = engine.destinations["10.0.0.2"]
    assert traffic.packets == 2
    assert traffic.bytes == 350
    assert traffic.flow_count == 1

    engine.ingest(make_packet(src_port=2222, size=50))
    assert traffic.packets == 3
    assert traffic.flow_count == 2


def test_flow_identity_includes_protocol(engine, make_packet):
    engine.ingest(make_packet(protocol="TCP"))
    engine.ingest(make_packet(protocol="UDP"))
    assert engine.destinations["10.0.0.2"].flow_count == 2


def test_report_sums_all_destinations(engine, make_packet):
    engine.ingest(make_packet(dst="10.0.0.2", size=100))
    engine.ingest(make_packet(dst="10.0.0.3", size=200))
    engine.ingest(make_packet(dst="10.0.0.3", size=200, src_port=7))

    report = parse_report(engine.snapshot_and_report())
    assert report.seq == 1
    assert (report.packets, report.bytes, report.flows) == (3, 500, 3)


def test_only_packets_alert_fires():
    fired = detect_alerts(TrafficTotals(31, 1000, 2), TrafficTotals(10, 1000, 2))
    assert fired == frozenset({PACKETS})


def test_alert_needs_strictly_more_than_three_times():
    assert detect_alerts(TrafficTotals(30, 3000, 6), TrafficTotals(10, 1000, 2)) == frozenset()


def test_first_timeslice_alerts_every_nonzero_metric():
    assert detect_alerts(TrafficTotals(1, 0, 0), TrafficTotals()) == frozenset({PACKETS})
    assert detect_alerts(TrafficTotals(1, 60, 1), TrafficTotals()) == frozenset({PACKETS, BYTES, FLOWS})


def test_packets_alert_text_after_quiet_timeslice(engine, make_packet):
    # previous timeslice: 10 packets, 1000 bytes, 2 flows
    for i in range(10):
        engine.ingest(make_packet(src_port=1 + i % 2, size=100))
    engine.snapshot_and_report()
    assert engine.previous == TrafficTotals(10, 1000, 2)

    # current timeslice: 31 packets, 1000 bytes, 2 flows
    for _ in range(30):
        engine.ingest(make_packet(src_port=1, size=32))
    engine.ingest(make_packet(src_port=2, size=40))

    text = engine.snapshot_and_report()
    assert text == "alert packets report 2 31 1000 2 10.0.0.2"
    assert "bytes" not in text.split()[:3]
    assert "flows" not in text.split()[:3]


def test_destination_precedence_prefers_packets(engine, make_packet):
    # many small packets to .2, one big packet to .3; both metrics alert
    for _ in range(5):
        engine.ingest(make_packet(dst="10.0.0.2", size=10))
    engine.ingest(make_packet(dst="10.0.0.3", size=5000))

    report = parse_report(engine.snapshot_and_report())
    assert report.alerts >= {PACKETS, BYTES}
    assert report.destination == "10.0.0.2"


def test_bytes_leader_used_when_packets_quiet(engine, make_packet):
    for _ in range(4):
        engine.ingest(make_packet(dst="10.0.0.2", size=10))
    engine.snapshot_and_report()

    engine.ingest(make_packet(dst="10.0.0.2", size=10))
    engine.ingest(make_packet(dst="10.0.0.2", size=10))
    engine.ingest(make_packet(dst="10.0.0.9", size=900))

    report = parse_report(engine.snapshot_and_report())
    assert report.alerts == frozenset({BYTES})
    assert report.destination == "10.0.0.9"


def test_leader_tie_keeps_first_seen_destination(engine, make_packet):
    engine.ingest(make_packet(dst="10.0.0.7", size=100))
    engine.ingest(make_packet(dst="10.0.0.3", size=100))

    report = parse_report(engine.snapshot_and_report())
    assert report.destination == "10.0.0.7"


def test_report_resets_state(engine, make_packet):
    engine.ingest(make_packet())
    engine.snapshot_and_report()
    assert engine.destinations == {}

    text = engine.snapshot_and_report()
    assert text == "report 2 0 0 0"
    assert engine.destinations == {}
    assert engine.previous == TrafficTotals()


def test_sequence_numbers_increase_by_one(engine):
    seqs = [parse_report(engine.snapshot_and_report()).seq for _ in range(3)]
    assert seqs == [1, 2, 3]
