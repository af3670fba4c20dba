"""
Stack outputs persistence.

One JSON document per deployable unit, keyed by stage, so later runs and
tooling can look up bucket names and distribution ids without querying the
control plane. Stored outputs are informational: anything destructive reads
outputs live from the stack instead.
"""
import json
import logging
import os
import tempfile
import threading
from datetime import datetime, timezone
from typing import Dict, Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)


class StageOutputs(BaseModel):
    last_updated: str = Field(alias="lastUpdated")
    outputs: Dict[str, str] = Field(default_factory=dict)

    model_config = {"populate_by_name": True}


class OutputsDocument(BaseModel):
    stages: Dict[str, StageOutputs] = Field(default_factory=dict)


_locks: Dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()


def _lock_for(path: str) -> threading.Lock:
    key = os.path.abspath(path)
    with _locks_guard:
        if key not in _locks:
            _locks[key] = threading.Lock()
        return _locks[key]


class OutputsStore:
    """Read-modify-write access to outputs documents.

    Writers in the same process are serialised per file; separate processes
    writing one file can still lose updates.
    """

    def load(self, path: str) -> Dict[str, StageOutputs]:
        """All stages in ``path``. Missing or unreadable documents are empty."""
        return self._read(path).stages

    def get(self, path: str, stage: str, key: str) -> Optional[str]:
        stage_outputs = self.load(path).get(stage)
        return stage_outputs.outputs.get(key) if stage_outputs else None

    def save(self, path: str, stage: str, outputs: Dict[str, str]) -> StageOutputs:
        """Merge ``outputs`` into ``stage`` and stamp the update time."""
        with _lock_for(path):
            document = self._read(path)
            merged = dict(document.stages[stage].outputs) if stage in document.stages else {}
            merged.update(outputs)
            document.stages[stage] = StageOutputs(
                last_updated=datetime.now(timezone.utc).isoformat(),
                outputs=merged,
            )
            self._write(path, document)
            logger.debug(f"Saved {len(outputs)} outputs for stage {stage} to {path}")
            return document.stages[stage]

    def remove(self, path: str, stage: str) -> bool:
        """Drop a stage's record. Returns whether anything was removed."""
        with _lock_for(path):
            document = self._read(path)
            if stage not in document.stages:
                return False
            del document.stages[stage]
            self._write(path, document)
            return True

    def _read(self, path: str) -> OutputsDocument:
        if not os.path.exists(path):
            return OutputsDocument()
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return OutputsDocument.model_validate(json.load(f))
        except (json.JSONDecodeError, ValidationError, OSError, UnicodeDecodeError) as e:
            logger.warning(f"Ignoring unreadable outputs file {path}: {e}")
            return OutputsDocument()

    def _write(self, path: str, document: OutputsDocument) -> None:
        directory = os.path.dirname(os.path.abspath(path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix=".outputs-", suffix=".json")
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump(document.model_dump(by_alias=True), f, indent=2)
            os.replace(tmp_path, path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise
