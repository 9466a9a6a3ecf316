"""
Storage Classes - uploaded log files and shared reports on disk

Uploads are kept one file per dataset and overwritten on every upload
(last write wins). Shared reports are JSON files keyed by share id.
"""

import gzip
import hashlib
import json
import logging
import os
import re
import secrets
import zlib
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from models.data_models import HealthStatus, Report
from utils.helpers import parse_ts

logger = logging.getLogger(__name__)

DATASETS = (
    "log",
    "overall-rpm",
    "overall-rps",
    "without-arl-rpm",
    "without-arl-rps",
    "arl-rpm",
    "arl-rps",
    "ghostmon",
)

GZIP_MAGIC = b"\x1f\x8b"
SHARE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]{1,64}$")


def decode_upload(content: bytes) -> str:
    """Raw upload bytes to text, gunzipping when the payload is gzip"""
    if not content:
        raise ValueError("Empty file content")

    if content[:2] == GZIP_MAGIC:
        try:
            content = gzip.decompress(content)
        except (OSError, EOFError, zlib.error) as e:
            raise ValueError(f"Could not decompress gzip upload: {e}") from e

    return content.decode("utf-8", errors="ignore")


class LogStore:
    """
    Manages uploaded dataset files.
    Responsibilities:
    - Save uploads (plain or gzip), replacing the previous one
    - Read a dataset back as text
    - Provide file statistics
    """

    def __init__(self, data_dir: str):
        self.data_dir = data_dir
        self.upload_dir = os.path.join(data_dir, "uploads")

    def path_for(self, dataset: str) -> str:
        if dataset not in DATASETS:
            raise ValueError(f"Unknown dataset '{dataset}'")
        return os.path.join(self.upload_dir, f"{dataset}.log")

    def save_upload(self, dataset: str, content: bytes) -> Dict[str, Any]:
        """Decode and store an upload; returns metadata about the saved file"""
        path = self.path_for(dataset)
        text = decode_upload(content)
        if not text.strip():
            raise ValueError("Empty file after decoding")

        os.makedirs(self.upload_dir, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(text)

        line_count = sum(1 for ln in text.splitlines() if ln.strip())
        logger.info("Stored %s upload: %d lines", dataset, line_count)
        return {"dataset": dataset, "lines": line_count, "bytes": len(text.encode("utf-8"))}

    def read_text(self, dataset: str) -> Optional[str]:
        """Dataset content, or None if nothing was uploaded yet"""
        try:
            with open(self.path_for(dataset), "r", encoding="utf-8") as f:
                return f.read()
        except FileNotFoundError:
            return None

    def stat(self) -> HealthStatus:
        """Sizes of the datasets currently stored"""
        sizes: Dict[str, int] = {}
        for dataset in DATASETS:
            path = self.path_for(dataset)
            if os.path.exists(path):
                sizes[dataset] = os.path.getsize(path)
        return HealthStatus(status="ok", data_dir=os.path.abspath(self.data_dir), datasets=sizes)


def content_hash(text: str) -> str:
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class ReportStore:
    """Shared report blobs, one JSON file per share id"""

    def __init__(self, data_dir: str):
        self.reports_dir = os.path.join(data_dir, "reports")

    def _path(self, share_id: str) -> Optional[str]:
        if not SHARE_ID_PATTERN.match(share_id):
            return None
        return os.path.join(self.reports_dir, f"{share_id}.json")

    def create(self, data: Any, description: Optional[str] = None) -> Report:
        os.makedirs(self.reports_dir, exist_ok=True)
        report = Report(
            share_id=secrets.token_urlsafe(9),
            data=data,
            created_at=datetime.now(timezone.utc).isoformat(),
            description=description,
        )
        with open(self._path(report.share_id), "w", encoding="utf-8") as f:
            json.dump(
                {
                    "share_id": report.share_id,
                    "data": report.data,
                    "created_at": report.created_at,
                    "description": report.description,
                },
                f,
                ensure_ascii=False,
                indent=2,
            )
        logger.info("Created shared report %s", report.share_id)
        return report

    def get(self, share_id: str) -> Optional[Report]:
        path = self._path(share_id)
        if path is None or not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, json.JSONDecodeError):
            logger.warning("Unreadable report file %s", path, exc_info=True)
            return None

        created = parse_ts(raw.get("created_at"))
        return Report(
            share_id=raw.get("share_id", share_id),
            data=raw.get("data"),
            created_at=created.isoformat() if created else "",
            description=raw.get("description"),
        )

    def delete(self, share_id: str) -> bool:
        path = self._path(share_id)
        if path is None or not os.path.exists(path):
            return False
        os.remove(path)
        logger.info("Deleted shared report %s", share_id)
        return True
