from __future__ import annotations

import copy
import hashlib
import json
import os
import threading
import time
import uuid
from pathlib import Path
from typing import Any, Protocol

from creative_engine.config import settings

PROJECT_INDEX = "_projects"


def now_ms() -> int:
    return int(time.time() * 1000)


def new_id() -> str:
    return str(uuid.uuid4())


def _sha256_bytes(content: bytes) -> str:
    return hashlib.sha256(content).hexdigest()


def _safe_filename(name: str) -> str:
    # Prevent path traversal.
    return os.path.basename(name).replace("..", "_")


def document_key(project_id: str | None, category: str) -> str:
    if project_id is None:
        return category
    return f"{project_id}_{category}"


class DocumentStore(Protocol):
    """
    Whole-document JSON storage keyed by project id and category.

    `get` returns None for a document that was never written. Callers that
    read, modify and write back a project's documents hold `lock(project_id)`
    for the whole sequence.
    """

    def get(self, project_id: str | None, category: str) -> Any: ...

    def put(self, project_id: str | None, category: str, doc: Any) -> None: ...

    def lock(self, project_id: str | None) -> threading.RLock: ...


class _ProjectLocks:
    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.RLock] = {}

    def lock(self, project_id: str | None) -> threading.RLock:
        key = project_id or PROJECT_INDEX
        with self._guard:
            lk = self._locks.get(key)
            if lk is None:
                lk = threading.RLock()
                self._locks[key] = lk
            return lk


class FileDocumentStore(_ProjectLocks):
    """One pretty-printed JSON file per document under `root_dir`."""

    def __init__(self, root_dir: Path | str | None = None) -> None:
        super().__init__()
        self.root_dir = Path(root_dir or settings.data_dir).resolve()
        self.root_dir.mkdir(parents=True, exist_ok=True)

    def path_for(self, project_id: str | None, category: str) -> Path:
        return self.root_dir / f"{_safe_filename(document_key(project_id, category))}.json"

    def get(self, project_id: str | None, category: str) -> Any:
        path = self.path_for(project_id, category)
        if not path.exists():
            return None
        return json.loads(path.read_text("utf-8"))

    def put(self, project_id: str | None, category: str, doc: Any) -> None:
        path = self.path_for(project_id, category)
        # Write to a sibling then rename so readers never see a half-written file.
        tmp = path.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(doc, indent=2), encoding="utf-8")
        tmp.replace(path)


class MemoryDocumentStore(_ProjectLocks):
    """Dict-backed store; documents are deep-copied in and out like a real store."""

    def __init__(self) -> None:
        super().__init__()
        self.docs: dict[str, Any] = {}

    def get(self, project_id: str | None, category: str) -> Any:
        doc = self.docs.get(document_key(project_id, category))
        return copy.deepcopy(doc)

    def put(self, project_id: str | None, category: str, doc: Any) -> None:
        self.docs[document_key(project_id, category)] = copy.deepcopy(doc)


class AssetStore:
    """Binary files (storyboard frame images) kept beside the project documents."""

    def __init__(self, root_dir: Path | str | None = None) -> None:
        self.root_dir = Path(root_dir or settings.data_dir).resolve()
        self.assets_dir = self.root_dir / "assets"
        self.assets_dir.mkdir(parents=True, exist_ok=True)

    def add(self, project_id: str, subdir: str, filename: str, content: bytes) -> dict[str, Any]:
        asset_id = uuid.uuid4().hex[:12]
        filename = f"{asset_id}_{_safe_filename(filename)}"
        out_dir = self.assets_dir / _safe_filename(project_id) / _safe_filename(subdir)
        out_dir.mkdir(parents=True, exist_ok=True)
        (out_dir / filename).write_bytes(content)
        return {
            "assetId": asset_id,
            "filename": filename,
            "sha256": _sha256_bytes(content),
            "createdAt": now_ms(),
        }

    def path(self, project_id: str, subdir: str, filename: str) -> Path:
        base = (self.assets_dir / _safe_filename(project_id) / _safe_filename(subdir)).resolve()
        path = (base / _safe_filename(filename)).resolve()
        if not str(path).startswith(str(base) + os.sep):
            raise ValueError("Refusing to read outside the asset directory")
        return path
