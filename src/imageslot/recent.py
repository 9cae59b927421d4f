"""
Recent Uploads

JSON-file store of previously uploaded images, newest first, so one can be
re-uploaded without transcoding again.
"""

import json
import logging
from pathlib import Path
from typing import List, Optional

from .config import settings
from .errors import RecordNotFoundError
from .models import RecentUploadRecord, encode_data_url

logger = logging.getLogger(__name__)


class RecentUploadStore:
    """
    Persistent list of recent uploads.

    State is saved to a JSON file after every change and capped at
    ``limit`` records.
    """

    def __init__(self, state_file: Optional[Path] = None, limit: Optional[int] = None):
        self.state_file = state_file or (settings.storage_path / "recent.json")
        self.limit = limit or settings.recent_limit
        self.records: List[RecentUploadRecord] = []

        self._load_state()

    def _load_state(self):
        """Load records from disk."""
        if not self.state_file.exists():
            return
        try:
            data = json.loads(self.state_file.read_text(encoding="utf-8"))
            self.records = [RecentUploadRecord(**item) for item in data.get("images", [])]
            logger.info(f"Loaded {len(self.records)} recent uploads")
        except Exception as e:
            logger.error(f"Failed to load recent uploads: {e}")
            self.records = []

    def _save_state(self):
        """Save records to disk."""
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        data = {"images": [r.model_dump(mode="json") for r in self.records]}
        self.state_file.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def list(self) -> List[RecentUploadRecord]:
        return list(self.records)

    def get(self, record_id: str) -> RecentUploadRecord:
        """
        Look up a record by id.

        Raises:
            RecordNotFoundError: If no record has that id
        """
        for record in self.records:
            if record.id == record_id:
                return record
        raise RecordNotFoundError(f"Recent upload not found: {record_id}")

    def append(self, data: bytes, size: int, mime: str = "image/jpeg") -> List[RecentUploadRecord]:
        """
        Record an upload.

        Args:
            data: Uploaded image bytes
            size: Uploaded size in bytes
            mime: Image type of ``data``

        Returns:
            Updated list, newest first
        """
        record = RecentUploadRecord(data_url=encode_data_url(data, mime), size=size)
        self.records = [record] + self.records[: self.limit - 1]
        self._save_state()
        logger.debug(f"Recorded recent upload {record.id[:8]} ({size} bytes)")
        return self.list()

    def clear(self) -> None:
        self.records = []
        self._save_state()
        logger.info("Cleared recent uploads")
