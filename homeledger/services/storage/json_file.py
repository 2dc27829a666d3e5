"""
Local JSON File Storage Implementation

DESIGN DECISION: One JSON document on local disk holds every key.
This mirrors browser-style local storage:
1. No database setup required
2. The user can open and back up the file directly
3. Whole collections are replaced at once, never patched

TRADEOFFS:
- Every write rewrites the file (fine for personal-scale data)
- Single writer only; concurrent processes are not supported

Writes go to a temporary sibling file and are moved into place, so a
crash mid-write leaves the previous document intact.
"""

import json
import os
from pathlib import Path
from typing import Any, Optional

from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from homeledger.services.storage.interface import (
    KeyValueStore,
    SerializationError,
    StorageError,
)


class JsonFileKeyValueStore(KeyValueStore):
    """
    Key-value store persisted as a single JSON object in a file.

    The file is created on first write. A missing file reads as empty.
    """

    def __init__(self, path: Path):
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _read_document(self) -> dict[str, Any]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open("r", encoding="utf-8") as f:
                document = json.load(f)
        except json.JSONDecodeError as e:
            raise SerializationError(f"Storage file {self._path} is not valid JSON: {e}")
        except OSError as e:
            raise StorageError(f"Failed to read {self._path}: {e}")

        if not isinstance(document, dict):
            raise SerializationError(
                f"Storage file {self._path} must hold a JSON object, "
                f"found {type(document).__name__}"
            )
        return document

    @retry(
        retry=retry_if_exception_type(OSError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.1, min=0.1, max=1),
        reraise=True,
    )
    def _write_document(self, document: dict[str, Any]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._path.with_name(self._path.name + ".tmp")
        try:
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(document, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self._path)
        except (OSError, TypeError, ValueError):
            tmp_path.unlink(missing_ok=True)
            raise

    def _save(self, document: dict[str, Any]) -> None:
        try:
            self._write_document(document)
        except OSError as e:
            raise StorageError(f"Failed to write {self._path}: {e}")
        except (TypeError, ValueError) as e:
            raise SerializationError(f"Value is not JSON-serializable: {e}")

    async def get(self, key: str) -> Optional[Any]:
        return self._read_document().get(key)

    async def set(self, key: str, value: Any) -> None:
        document = self._read_document()
        document[key] = value
        self._save(document)

    async def delete(self, key: str) -> bool:
        document = self._read_document()
        if key not in document:
            return False
        del document[key]
        self._save(document)
        return True

    async def keys(self) -> list[str]:
        return list(self._read_document())
