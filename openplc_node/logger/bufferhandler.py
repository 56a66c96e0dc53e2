import logging
from collections import deque
from typing import List, Optional
import json
from datetime import datetime
from threading import Lock


class BufferHandler(logging.Handler):
    """
    Logging handler that keeps the most recent formatted records in memory (FIFO).
    Records are formatted with the attached formatter (JSON).
    """
    def __init__(self, capacity: int = 1000):
        super().__init__()
        self.buffer = deque(maxlen=capacity)
        self._lock = Lock()

    def emit(self, record: logging.LogRecord) -> None:
        with self._lock:
            try:
                self.buffer.append(self.format(record))
            except Exception:
                self.handleError(record)

    def filter_logs(self, logs, level=None, min_id=None, max_id=None):
        result = logs
        if level is not None:
            result = [log for log in result if log.get("level") == level]
        if min_id is not None:
            result = [log for log in result if log.get("id", 0) >= min_id]
        if max_id is not None:
            result = [log for log in result if log.get("id", 0) <= max_id]
        return result

    def get_logs(self, count: Optional[int] = None,
                 min_id: Optional[int] = None,
                 level: Optional[str] = None) -> List[dict]:
        """Retrieve decoded logs from the buffer, oldest first."""
        with self._lock:
            logs = [json.loads(item) for item in self.buffer]
        logs = self.filter_logs(logs, level=level, min_id=min_id)
        if count is not None and count < len(logs):
            logs = logs[-count:]
        return logs

    def normalize_timestamp_no_microseconds(self, ts: str) -> str:
        """Normalize ISO 8601 timestamp to remove microseconds."""
        dt = datetime.fromisoformat(ts)
        return dt.replace(microsecond=0).strftime("%Y-%m-%dT%H:%M:%S%z")

    def normalize_logs(self, json_logs: List[dict]) -> List[dict]:
        normalized = []
        for data in json_logs:
            entry = dict(data)
            if "timestamp" in entry:
                entry["timestamp"] = self.normalize_timestamp_no_microseconds(entry["timestamp"])
            entry.setdefault("level", "INFO")
            entry.setdefault("message", "")
            normalized.append(entry)
        return normalized

    def clear(self) -> None:
        with self._lock:
            self.buffer.clear()

    def __len__(self):
        return len(self.buffer)
