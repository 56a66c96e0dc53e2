import itertools
import json
import logging
from datetime import datetime, timezone

_record_ids = itertools.count(1)


class JsonFormatter(logging.Formatter):
    """
    Formats a log record as a single JSON object.
    Every formatted record gets a process wide increasing id, which
    BufferHandler uses to filter with min_id / max_id.
    """
    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "id": next(_record_ids),
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)
