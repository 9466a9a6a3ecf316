from __future__ import annotations

import logging
import os
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from fastapi import Body, FastAPI, File, HTTPException, Query, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from services.aggregator import (
    calculate_ghostmon_metrics,
    calculate_traffic_metrics,
    compute_metrics,
    filter_by_time_range,
    unique_in_order,
)
from services.dataset import DatasetCache
from services.ghostmon_parser import GhostmonParser
from services.parser import LogParser
from services.storage import DATASETS, LogStore, ReportStore
from services.traffic_analysis import generate_traffic_analysis
from services.traffic_parser import TrafficParser
from utils.logger import setup_logging

# ──────────────────────────────────────────────────────────────────────────────
# Config
# ──────────────────────────────────────────────────────────────────────────────

API_PREFIX = "/api"
DATA_DIR = os.getenv("DATA_DIR", "./data")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FORMAT = os.getenv("LOG_FORMAT", "text")  # "text" or "json"
CORRELATION_WINDOW_S = float(os.getenv("CORRELATION_WINDOW_S", "1.0"))
ANOMALY_STDDEV = float(os.getenv("ANOMALY_STDDEV", "2.0"))
MAX_UPLOAD_MB = int(os.getenv("MAX_UPLOAD_MB", "50"))

setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = logging.getLogger(__name__)

store = LogStore(DATA_DIR)
cache = DatasetCache(store, CORRELATION_WINDOW_S)
reports = ReportStore(DATA_DIR)

# ──────────────────────────────────────────────────────────────────────────────
# App
# ──────────────────────────────────────────────────────────────────────────────

app = FastAPI(title="Overload Monitor (Upload Logs → Dashboard APIs)")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # dev OK; lock down in prod
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ValueError)
async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
    logger.warning("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=400, content={"detail": str(exc)})


def dump(records: List[Any]) -> List[Dict[str, Any]]:
    return [asdict(r) for r in records]


# ──────────────────────────────────────────────────────────────────────────────
# Upload (last write wins per dataset)
# ──────────────────────────────────────────────────────────────────────────────

@app.post(f"{API_PREFIX}/upload/{{dataset}}")
async def upload(dataset: str, file: UploadFile = File(...)) -> Dict[str, Any]:
    """
    Accepts plain text or gzip. Datasets:
      log, overall-rpm, overall-rps, without-arl-rpm, without-arl-rps,
      arl-rpm, arl-rps, ghostmon
    """
    if dataset not in DATASETS:
        raise HTTPException(status_code=404, detail=f"Unknown dataset '{dataset}'")

    content = await file.read()
    if len(content) > MAX_UPLOAD_MB * 1024 * 1024:
        raise HTTPException(status_code=413, detail=f"File exceeds {MAX_UPLOAD_MB}MB")

    saved = store.save_upload(dataset, content)
    cache.invalidate(dataset)
    return {"status": "ok", "filename": file.filename, **saved}


# ──────────────────────────────────────────────────────────────────────────────
# Health
# ──────────────────────────────────────────────────────────────────────────────

@app.get(f"{API_PREFIX}/health")
def health() -> Dict[str, Any]:
    return asdict(store.stat())


# ──────────────────────────────────────────────────────────────────────────────
# Server log: samples, overload events, metrics, detailed table
# ──────────────────────────────────────────────────────────────────────────────

@app.get(f"{API_PREFIX}/log/samples")
def log_samples(time_range: str = Query("all", alias="range")) -> Dict[str, Any]:
    samples = filter_by_time_range(cache.log().samples, time_range)
    return {"samples": dump(samples)}


@app.get(f"{API_PREFIX}/log/events")
def log_events(time_range: str = Query("all", alias="range")) -> Dict[str, Any]:
    events = filter_by_time_range(cache.log().events, time_range)
    return {"events": dump(events)}


@app.get(f"{API_PREFIX}/log/metrics")
def log_metrics(time_range: str = Query("all", alias="range")) -> Dict[str, Any]:
    result = cache.log()
    if time_range == "all":
        return {
            "metrics": asdict(result.metrics),
            "event_count": len(result.events),
            "unique_resource_ids": result.unique_resource_ids,
        }

    samples = filter_by_time_range(result.samples, time_range)
    # events share the samples' anchor; each event has a synthetic sample
    latest = samples[-1].timestamp if samples else None
    events = filter_by_time_range(result.events, time_range, latest)
    return {
        "metrics": asdict(compute_metrics(samples)),
        "event_count": len(events),
        "unique_resource_ids": unique_in_order(e.resource_id for e in events),
    }


@app.get(f"{API_PREFIX}/log/detailed")
def log_detailed(time_range: str = Query("all", alias="range")) -> Dict[str, Any]:
    entries = filter_by_time_range(cache.detailed_log(), time_range)
    return {
        "entries": dump(entries),
        "primary_trigger_group": LogParser.primary_trigger_group(entries),
    }


# ──────────────────────────────────────────────────────────────────────────────
# Traffic (RPM / RPS, ARL sections, subset-vs-overall analysis)
# ──────────────────────────────────────────────────────────────────────────────

@app.get(f"{API_PREFIX}/traffic/arl")
def traffic_arl(
    time_range: str = Query("all", alias="range"),
    year: Optional[int] = Query(None, ge=1970, le=9999),
) -> Dict[str, Any]:
    rpm_sections, rps_sections = cache.arl(year)
    metrics = calculate_traffic_metrics(
        TrafficParser.flatten_arl(rpm_sections), TrafficParser.flatten_arl(rps_sections)
    )

    def sliced(sections):
        return [
            {"resource_id": s.resource_id, "requests": dump(filter_by_time_range(s.requests, time_range))}
            for s in sections
        ]

    return {"rpm": sliced(rpm_sections), "rps": sliced(rps_sections), "metrics": asdict(metrics)}


@app.get(f"{API_PREFIX}/traffic/analysis")
def traffic_analysis(
    arl_id: int = Query(...),
    resolution: str = Query("rpm", pattern="^(rpm|rps)$"),
    threshold: float = Query(ANOMALY_STDDEV, gt=0),
    time_range: str = Query("all", alias="range"),
    year: Optional[int] = Query(None, ge=1970, le=9999),
) -> Dict[str, Any]:
    rpm_sections, rps_sections = cache.arl(year)
    section = TrafficParser.find_arl(rpm_sections if resolution == "rpm" else rps_sections, arl_id)
    if section is None:
        raise HTTPException(status_code=404, detail=f"No {resolution} traffic for ARL {arl_id}")

    overall_rpm, overall_rps = cache.traffic("overall", year)
    overall = overall_rpm if resolution == "rpm" else overall_rps

    windowed_subset = filter_by_time_range(section.requests, time_range)
    windowed_superset = filter_by_time_range(overall, time_range)
    subset, superset = TrafficParser.align_series(windowed_subset, windowed_superset)
    analysis = generate_traffic_analysis(subset, superset, threshold)
    return {
        "arl_id": arl_id,
        "resolution": resolution,
        "paired_points": len(subset),
        "analysis": asdict(analysis),
        "combined": TrafficParser.combine_series(windowed_subset, windowed_superset),
    }


@app.get(f"{API_PREFIX}/traffic/{{category}}")
def traffic(
    category: str,
    time_range: str = Query("all", alias="range"),
    year: Optional[int] = Query(None, ge=1970, le=9999),
) -> Dict[str, Any]:
    rpm, rps = cache.traffic(category, year)
    return {
        "rpm": dump(filter_by_time_range(rpm, time_range)),
        "rps": dump(filter_by_time_range(rps, time_range)),
        "metrics": asdict(calculate_traffic_metrics(rpm, rps)),
    }


# ──────────────────────────────────────────────────────────────────────────────
# Ghostmon
# ──────────────────────────────────────────────────────────────────────────────

@app.get(f"{API_PREFIX}/ghostmon")
def ghostmon(
    dnsp_key: str = Query("all"),
    time_range: str = Query("all", alias="range"),
    year: Optional[int] = Query(None, ge=1970, le=9999),
) -> Dict[str, Any]:
    entries = GhostmonParser.filter_by_dnsp_key(cache.ghostmon(year), dnsp_key)
    entries = filter_by_time_range(entries, time_range)
    return {"entries": dump(entries), "metrics": asdict(calculate_ghostmon_metrics(entries))}


# ──────────────────────────────────────────────────────────────────────────────
# Shared reports
# ──────────────────────────────────────────────────────────────────────────────

@app.post(f"{API_PREFIX}/reports")
def create_report(
    data: Any = Body(..., embed=True),
    description: Optional[str] = Body(None, embed=True),
) -> Dict[str, Any]:
    return asdict(reports.create(data, description))


@app.get(f"{API_PREFIX}/reports/{{share_id}}")
def get_report(share_id: str) -> Dict[str, Any]:
    report = reports.get(share_id)
    if report is None:
        raise HTTPException(status_code=404, detail="Report not found")
    return asdict(report)


@app.delete(f"{API_PREFIX}/reports/{{share_id}}")
def delete_report(share_id: str) -> Dict[str, Any]:
    if not reports.delete(share_id):
        raise HTTPException(status_code=404, detail="Report not found")
    return {"status": "deleted", "share_id": share_id}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "127.0.0.1"), port=int(os.getenv("PORT", "8000")))
