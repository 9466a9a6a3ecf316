from datetime import datetime, timezone

from services.traffic_parser import TrafficParser


def epoch(*args):
    return datetime(*args, tzinfo=timezone.utc).timestamp()


def test_arl_sections_in_file_order(arl_rpm):
    sections = TrafficParser.parse_arl_rpm(arl_rpm, year=2024)

    assert [s.resource_id for s in sections] == [111, 222]
    assert [len(s.requests) for s in sections] == [3, 3]
    assert [p.request_count for p in sections[0].requests] == [66, 70, 12]
    assert sections[0].requests[0].timestamp == epoch(2024, 4, 10, 21, 1)
    assert sections[0].requests[0].formatted_time == "10 Apr 21:01"


def test_arl_header_tolerant_forms():
    content = "ARL ID: 5\n10 Apr 21:01:18 3\n### ARL ID:6\n10 Apr 21:01:19 4\n"
    sections = TrafficParser.parse_arl_rps(content, year=2024)

    assert [s.resource_id for s in sections] == [5, 6]
    assert sections[1].requests[0].timestamp == epoch(2024, 4, 10, 21, 1, 19)


def test_arl_lines_before_header_and_empty_sections_are_dropped():
    content = "10 Apr 21:01 9\n## ARL ID: 1\n## ARL ID: 2\n10 Apr 21:02 8\n"
    sections = TrafficParser.parse_arl_rpm(content, year=2024)

    assert [s.resource_id for s in sections] == [2]


def test_series_sorted_with_comments_and_crlf(overall_rpm):
    points = TrafficParser.parse_rpm(overall_rpm.replace("\n", "\r\n"), year=2024)

    assert [p.request_count for p in points] == [200, 250, 300]
    stamps = [p.timestamp for p in points]
    assert stamps == sorted(stamps)


def test_extra_trailing_fields_and_garbage():
    content = "10 Apr 21:01:05 710 extra=1\nnot a traffic line\n31 Foo 21:01:06 5\n"
    points = TrafficParser.parse_rps(content, year=2024)

    assert len(points) == 1
    assert points[0].request_count == 710
    assert points[0].formatted_time == "10 Apr 21:01:05"


def test_empty_input():
    assert TrafficParser.parse_rpm("") == []
    assert TrafficParser.parse_rpm("# only comments\n") == []
    assert TrafficParser.parse_arl_rpm("") == []


def test_year_is_injected():
    points = TrafficParser.parse_rpm("31 Dec 23:59 1\n1 Jan 00:00 2\n", year=2023)

    # no rollover handling: both lines land in the same year
    assert points[0].request_count == 2
    assert points[0].timestamp == epoch(2023, 1, 1, 0, 0)


def test_align_and_combine():
    subset = TrafficParser.parse_rpm("10 Apr 21:01 5\n10 Apr 21:03 7\n", year=2024)
    superset = TrafficParser.parse_rpm("10 Apr 21:01 50\n10 Apr 21:02 60\n10 Apr 21:03 70\n", year=2024)

    a, b = TrafficParser.align_series(subset, superset)
    assert [p.request_count for p in a] == [5, 7]
    assert [p.request_count for p in b] == [50, 70]

    rows = TrafficParser.combine_series(subset, superset)
    assert [(r["subset"], r["superset"]) for r in rows] == [(5, 50), (None, 60), (7, 70)]


def test_flatten_and_find(arl_rpm):
    sections = TrafficParser.parse_arl_rpm(arl_rpm, year=2024)

    assert len(TrafficParser.flatten_arl(sections)) == 6
    assert TrafficParser.find_arl(sections, 222).requests[0].request_count == 5
    assert TrafficParser.find_arl(sections, 999) is None
