# ldclash/history.py
"""Client-side exchange history: capped, most-recent-first, stored as JSON under one key."""
import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterator, List, MutableMapping, Optional
from uuid import uuid4

from loguru import logger

HISTORY_STORAGE_KEY = "ldclash_history_v1"
HISTORY_LIMIT = 200


@dataclass(frozen=True)
class HistoryEntry:
    id: str
    timestamp: str
    mode: str
    input: str
    output: str

    @classmethod
    def create(cls, mode: str, input: str, output: str) -> "HistoryEntry":
        return cls(
            id=uuid4().hex,
            timestamp=datetime.now(timezone.utc).isoformat(),
            mode=mode,
            input=input,
            output=output,
        )

    @classmethod
    def from_dict(cls, data: Dict) -> Optional["HistoryEntry"]:
        try:
            return cls(
                id=str(data["id"]),
                timestamp=str(data["timestamp"]),
                mode=str(data["mode"]),
                input=str(data["input"]),
                output=str(data["output"]),
            )
        except (KeyError, TypeError):
            return None


class JsonFileStorage(MutableMapping[str, str]):
    """A string key/value store persisted as one JSON object on disk."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning(f"[HISTORY] Could not read {self.path}: {e}")
            return {}
        return data if isinstance(data, dict) else {}

    def _save(self, data: Dict[str, str]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data), encoding="utf-8")

    def __getitem__(self, key: str) -> str:
        return self._load()[key]

    def __setitem__(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._save(data)

    def __delitem__(self, key: str) -> None:
        data = self._load()
        del data[key]
        self._save(data)

    def __iter__(self) -> Iterator[str]:
        return iter(self._load())

    def __len__(self) -> int:
        return len(self._load())


class ChatHistory:
    def __init__(
        self,
        storage: MutableMapping[str, str],
        key: str = HISTORY_STORAGE_KEY,
        limit: int = HISTORY_LIMIT,
    ):
        self.storage = storage
        self.key = key
        self.limit = limit

    def entries(self) -> List[HistoryEntry]:
        raw = self.storage.get(self.key)
        if not raw:
            return []
        try:
            items = json.loads(raw)
        except ValueError:
            logger.warning(f"[HISTORY] Ignoring corrupt history under {self.key!r}")
            return []
        if not isinstance(items, list):
            return []
        entries = [HistoryEntry.from_dict(item) for item in items if isinstance(item, dict)]
        return [entry for entry in entries if entry is not None][: self.limit]

    def _write(self, entries: List[HistoryEntry]) -> None:
        self.storage[self.key] = json.dumps([asdict(entry) for entry in entries])

    def add(self, mode: str, input: str, output: str) -> HistoryEntry:
        entry = HistoryEntry.create(mode, input, output)
        self._write(([entry] + self.entries())[: self.limit])
        return entry

    def delete(self, entry_id: str) -> bool:
        entries = self.entries()
        kept = [entry for entry in entries if entry.id != entry_id]
        if len(kept) == len(entries):
            return False
        self._write(kept)
        return True

    def clear(self) -> None:
        self.storage.pop(self.key, None)

    def export_json(self) -> str:
        return json.dumps([asdict(entry) for entry in self.entries()], indent=2, ensure_ascii=False)
