# assetfinish/media/manifest.py
import json
import os
import tempfile
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, Tuple

from jsonschema import Draft202012Validator

from assetfinish.utils.errors import ManifestError

SCRIPT_SUFFIXES = (".js",)

MANIFEST_SCHEMA = {
    "$schema": "https://json-schema.org/draft/2020-12/schema",
    "type": "object",
    "additionalProperties": {
        "type": "object",
        "required": ["logical_path", "output_file", "size", "mtime"],
        "properties": {
            "logical_path": {"type": "string", "minLength": 1},
            "output_file": {"type": "string", "minLength": 1},
            "size": {"type": "integer", "minimum": 0},
            "mtime": {"type": "string"},
        },
    },
}


@dataclass
class AssetEntry:
    logical_path: str
    output_file: str
    size: int
    mtime: str
    extra: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_script(self) -> bool:
        return self.logical_path.endswith(SCRIPT_SUFFIXES)

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "AssetEntry":
        known = {"logical_path", "output_file", "size", "mtime"}
        return cls(
            logical_path=d["logical_path"],
            output_file=d["output_file"],
            size=d["size"],
            mtime=d["mtime"],
            extra={k: v for k, v in d.items() if k not in known},
        )

    def to_dict(self) -> Dict[str, Any]:
        out = dict(self.extra)
        out.update(
            logical_path=self.logical_path,
            output_file=self.output_file,
            size=self.size,
            mtime=self.mtime,
        )
        return out


class ManifestStore:
    """
    In-memory asset manifest backed by a JSON file.

    load() happens before any worker starts and save() after they all
    finish; in between, workers only call mutate(), which is serialized
    by a single lock.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._entries: Dict[str, AssetEntry] = {}
        self._lock = threading.Lock()

    def load(self) -> "ManifestStore":
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError as e:
            raise ManifestError(f"manifest not found: {self.path}") from e
        except json.JSONDecodeError as e:
            raise ManifestError(f"{self.path}: invalid JSON ({e})") from e

        errors = sorted(Draft202012Validator(MANIFEST_SCHEMA).iter_errors(raw), key=lambda e: list(e.path))
        if errors:
            lines = [f"{'/'.join(map(str, e.path)) or '(root)'}: {e.message}" for e in errors[:50]]
            raise ManifestError(f"{self.path}: {len(errors)} schema error(s)\n" + "\n".join(lines))

        with self._lock:
            self._entries = {k: AssetEntry.from_dict(v) for k, v in raw.items()}
        return self

    reload = load

    def entries(self) -> Iterator[Tuple[str, AssetEntry]]:
        # Snapshot so enumeration never races a concurrent mutate().
        with self._lock:
            items = list(self._entries.items())
        return iter(items)

    def get(self, key: str) -> AssetEntry:
        with self._lock:
            return self._entries[key]

    def mutate(self, key: str, size: int, mtime: str) -> None:
        with self._lock:
            entry = self._entries[key]
            entry.size = size
            entry.mtime = mtime

    def __len__(self) -> int:
        return len(self._entries)

    def save(self) -> None:
        with self._lock:
            data = {k: e.to_dict() for k, e in self._entries.items()}
        fd, tmp = tempfile.mkstemp(prefix=".manifest-", suffix=".json", dir=self.path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
                f.write("\n")
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
