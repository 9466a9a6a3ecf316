import pytest
from fastapi.testclient import TestClient

from services.dataset import DatasetCache
from services.storage import LogStore, ReportStore

SERVER_LOG = (
    "100.000 Robust - stats: CPU: all 95% flit 40% AVG manager cycle 2500us "
    "Mem RSS 204800 KB Accepts: http/https 12/30\n"
    "100.500 OverloadManager::processMainLoop() overloaded, triggered by cpu:0.92\n"
    "100.700 OverloadManager::addCandidateTarget() arlid:42 rule:'cpu_high' "
    "trigger_pct:85.5% deny_pct:10.0% metrics (cpu:120ms mem:2048KB reqs:300)\n"
)

MULTI_EVENT_LOG = "\r\n".join(
    [
        "# server log excerpt",
        "200.000 Robust - stats: CPU: all 70% flit 20% AVG manager cycle 1000us",
        "200.100 OverloadManager::processMainLoop() triggered by cpu:0.81",
        "200.200 OverloadManager::addCandidateTarget() arlid:7 rule:'cpu_rule' trigger_pct:81% deny_pct:5%",
        "203.000 Robust - stats: CPU: all 0% flit 60% AVG manager cycle 3000us   ",
        "205.500 OverloadManager::processMainLoop() triggered by flits:0.65",
        "205.600 OverloadManager::addCandidateTarget() arlid:9 rule:'flit_rule' trigger_pct:65% deny_pct:0%",
        "205.650 OverloadManager::processMainLoop() triggered by cpu:0.9",
        "205.700 OverloadManager::addCandidateTarget() arlid:7 rule:'cpu_rule' trigger_pct:90% deny_pct:20%",
        "210.000 OverloadManager::processMainLoop() triggered by mem:0.5",
        "this line matches nothing",
        "",
    ]
)

ARL_RPM = """# command: arl-report --rpm
## ARL ID: 111
10 Apr 21:01 66
10 Apr 21:02 70
10 Apr 21:03 12
## ARL ID: 222
10 Apr 21:01 5
10 Apr 21:02 6
10 Apr 21:03 7
"""

OVERALL_RPM = """# overall traffic
10 Apr 21:03 300
10 Apr 21:01 200
10 Apr 21:02 250
"""


@pytest.fixture
def server_log():
    return SERVER_LOG


@pytest.fixture
def multi_event_log():
    return MULTI_EVENT_LOG


@pytest.fixture
def arl_rpm():
    return ARL_RPM


@pytest.fixture
def overall_rpm():
    return OVERALL_RPM


@pytest.fixture
def client(tmp_path, monkeypatch):
    import main

    store = LogStore(str(tmp_path))
    monkeypatch.setattr(main, "store", store)
    monkeypatch.setattr(main, "cache", DatasetCache(store))
    monkeypatch.setattr(main, "reports", ReportStore(str(tmp_path)))
    return TestClient(main.app)
