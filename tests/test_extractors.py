import pytest

from services.extractors import (
    classify_trigger,
    extract_candidate,
    extract_stats,
    extract_timestamp,
    extract_trigger,
)


def test_stats_fields_are_independent():
    stats = extract_stats("12.5 stats: Mem RSS 1024 KB Accepts: http/https 3/4 trailing junk")

    assert stats.timestamp == 12.5
    assert stats.cpu_percent == 0
    assert stats.mem_rss_mb == 1.0
    assert stats.http_accepts == 3
    assert stats.https_accepts == 4


def test_stats_requires_timestamp_and_a_field():
    assert extract_stats("Robust - stats: CPU: all 5%") is None
    assert extract_stats("12.5 Robust - stats: nothing here") is None


def test_cycle_is_converted_to_ms():
    assert extract_stats("1.0 AVG manager cycle 1500us").avg_manager_cycle_ms == pytest.approx(1.5)


def test_trigger_and_candidate_lines_are_not_stats():
    line = "1.0 OverloadManager::processMainLoop() CPU: all 90% triggered by cpu:0.9"
    assert extract_stats(line) is None
    assert extract_trigger(line).ratio == pytest.approx(0.9)


def test_trigger_needs_marker_and_ratio():
    assert extract_trigger("1.0 something triggered by cpu:0.9") is None
    assert extract_trigger("1.0 OverloadManager::processMainLoop() idle") is None


def test_unknown_trigger_name_is_preserved():
    trigger = extract_trigger("7.25 OverloadManager::processMainLoop() triggered by disk_io:0.4")

    assert trigger.kind.raw == "disk_io"
    assert trigger.kind.kind == "other"


@pytest.mark.parametrize(
    "raw,group",
    [("cpu", "cpu"), ("flits", "flit"), ("FLIT", "flit"), ("mem", "mem"), ("reqs", "reqs"), ("requests", "reqs")],
)
def test_classify_trigger(raw, group):
    assert classify_trigger(raw).kind == group


def test_candidate_optional_fields():
    bare = extract_candidate("3.0 addCandidateTarget() nothing else")

    assert bare.resource_id is None
    assert bare.rule is None
    assert bare.metrics_reqs == 0


def test_candidate_without_timestamp_is_ignored():
    assert extract_candidate("addCandidateTarget() arlid:1") is None


def test_timestamp_tolerates_leading_space():
    assert extract_timestamp("  1712780064.125 x") == pytest.approx(1712780064.125)
    assert extract_timestamp("x 1.0") is None
