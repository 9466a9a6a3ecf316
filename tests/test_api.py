import gzip


def upload(client, dataset, content, filename="upload.log"):
    return client.post(f"/api/upload/{dataset}", files={"file": (filename, content)})


def test_health_on_empty_store(client):
    response = client.get("/api/health")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"
    assert response.json()["datasets"] == {}


def test_upload_then_events(client, server_log):
    response = upload(client, "log", server_log)
    assert response.status_code == 200
    assert response.json()["lines"] == 3

    events = client.get("/api/log/events").json()["events"]
    assert len(events) == 1
    assert events[0]["resource_id"] == 42
    assert events[0]["rule"] == "cpu_high"
    assert events[0]["trigger_kind"] == {"kind": "cpu", "raw": "cpu"}


def test_gzip_upload_replaces_previous(client, server_log, multi_event_log):
    upload(client, "log", server_log)
    upload(client, "log", gzip.compress(multi_event_log.encode()), "server.log.gz")

    body = client.get("/api/log/metrics").json()
    assert body["event_count"] == 4
    assert body["unique_resource_ids"] == [7, 9]


def test_samples_time_range(client, multi_event_log):
    upload(client, "log", multi_event_log)

    samples = client.get("/api/log/samples", params={"range": "5s"}).json()["samples"]
    assert [s["timestamp"] for s in samples] == [205.5, 205.65, 210.0]


def test_detailed_log(client, multi_event_log):
    upload(client, "log", multi_event_log)

    body = client.get("/api/log/detailed").json()
    assert len(body["entries"]) == 4
    assert body["primary_trigger_group"] == "flit"


def test_nothing_uploaded_is_empty(client):
    assert client.get("/api/log/events").json() == {"events": []}
    assert client.get("/api/ghostmon").json()["metrics"]["timespan"] == "N/A"


def test_bad_range_is_rejected(client):
    response = client.get("/api/log/events", params={"range": "2d"})

    assert response.status_code == 400
    assert "2d" in response.json()["detail"]


def test_unknown_dataset(client):
    assert upload(client, "syslog", "x\n").status_code == 404


def test_empty_upload(client):
    assert upload(client, "log", b"").status_code == 400


def test_oversize_upload(client, monkeypatch, server_log):
    import main

    monkeypatch.setattr(main, "MAX_UPLOAD_MB", 0)
    assert upload(client, "log", server_log).status_code == 413


def test_traffic_category(client, overall_rpm):
    upload(client, "overall-rpm", overall_rpm)

    body = client.get("/api/traffic/overall", params={"year": 2024}).json()
    assert [p["request_count"] for p in body["rpm"]] == [200, 250, 300]
    assert body["metrics"]["max_rpm"] == 300
    assert body["rps"] == []

    assert client.get("/api/traffic/everything").status_code == 400


def test_arl_sections(client, arl_rpm):
    upload(client, "arl-rpm", arl_rpm)

    body = client.get("/api/traffic/arl", params={"year": 2024}).json()
    assert [s["resource_id"] for s in body["rpm"]] == [111, 222]
    assert body["metrics"]["total_requests"] == 166


def test_traffic_analysis(client, arl_rpm, overall_rpm):
    upload(client, "arl-rpm", arl_rpm)
    upload(client, "overall-rpm", overall_rpm)

    response = client.get("/api/traffic/analysis", params={"arl_id": 111, "year": 2024})
    assert response.status_code == 200
    body = response.json()
    assert body["paired_points"] == 3
    assert body["analysis"]["peaks"] == {"subset": 70, "superset": 300}
    assert body["analysis"]["traffic_percentage"] == 20
    assert len(body["combined"]) == 3

    missing = client.get("/api/traffic/analysis", params={"arl_id": 999, "year": 2024})
    assert missing.status_code == 404

    bad = client.get("/api/traffic/analysis", params={"arl_id": 111, "resolution": "rph"})
    assert bad.status_code == 422


def test_ghostmon_filter(client):
    content = (
        "1712780065 dnsp_key=W flyteload=500 hits=1 suspendflag=1 suspendlevel=4\n"
        "1712780066 dnsp_key=S flyteload=300 hits=10.5 suspendflag=0 suspendlevel=2\n"
    )
    upload(client, "ghostmon", content)

    body = client.get("/api/ghostmon", params={"dnsp_key": "S"}).json()
    assert [e["dnsp_key"] for e in body["entries"]] == ["S"]
    assert body["metrics"]["max_flyteload"] == 300


def test_reports(client):
    created = client.post("/api/reports", json={"data": {"events": 3}, "description": "spike"})
    assert created.status_code == 200
    share_id = created.json()["share_id"]

    fetched = client.get(f"/api/reports/{share_id}").json()
    assert fetched["data"] == {"events": 3}
    assert fetched["description"] == "spike"

    assert client.delete(f"/api/reports/{share_id}").status_code == 200
    assert client.get(f"/api/reports/{share_id}").status_code == 404
    assert client.get("/api/reports/not.valid").status_code == 404


def test_log_metrics_respect_range(client, multi_event_log):
    upload(client, "log", multi_event_log)

    body = client.get("/api/log/metrics", params={"range": "5s"}).json()
    assert body["event_count"] == 3
    assert body["unique_resource_ids"] == [9]
    assert body["metrics"]["flit"]["max"] == 60
    assert body["metrics"]["cpu"]["max"] == 0


def test_traffic_analysis_combined_series_follows_range(client):
    arl = "## ARL ID: 111\n" + "".join(f"10 Apr 21:{m:02d} {m + 1}\n" for m in range(30))
    overall = "".join(f"10 Apr 21:{m:02d} {10 * (m + 1)}\n" for m in range(30))
    upload(client, "arl-rpm", arl)
    upload(client, "overall-rpm", overall)

    body = client.get(
        "/api/traffic/analysis", params={"arl_id": 111, "year": 2024, "range": "1m"}
    ).json()

    assert body["paired_points"] == 2
    assert len(body["combined"]) == 2
    assert [row["subset"] for row in body["combined"]] == [29, 30]
    assert [row["superset"] for row in body["combined"]] == [290, 300]
