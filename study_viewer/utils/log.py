from datetime import datetime, timezone
from pathlib import Path
import json


class EventLog:
    """Append-only JSONL file of session events (fetch failures, queries)."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def write(self, event: str, **fields):
        obj = {"ts": datetime.now(timezone.utc).isoformat(timespec="seconds"), "event": event}
        obj.update(fields)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.path, "a", encoding="utf-8") as f:
            f.write(json.dumps(obj, ensure_ascii=False) + "\n")

    def read(self) -> list:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            return [json.loads(ln) for ln in f if ln.strip()]
