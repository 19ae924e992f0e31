"""
Call Record Store

One JSON document per call in the calls directory, keyed by its sanitized
fileName:

    <calls_path>/<fileName>.json   call record
    <calls_path>/<fileName>.emb    raw embedding vector (debug side-channel)

Records are shared: processing any call may append to the adjacency lists
of another. Read-modify-write cycles go through a per-fileName asyncio.Lock,
so concurrent pipelines in one process never lose each other's appends.
"""
import asyncio
import json
import logging
import weakref
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError as PydanticValidationError

from chacotero.errors import NotFoundError, ValidationError
from chacotero.models import CallRecord
from chacotero.services.srt_service import sanitize_filename
from chacotero.settings import get_settings

logger = logging.getLogger(__name__)

RELATION_FIELDS = ("duplicate_of", "related_calls")


class CallStore:
    """JSON-file-per-call store"""

    def __init__(self, calls_path: Optional[Path] = None):
        """Initialize the store rooted at `calls_path` (defaults to settings)"""
        self.calls_path = Path(calls_path or get_settings().calls_path)
        # Entries disappear once no coroutine holds or waits on the lock
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    def path_for(self, file_name: str, suffix: str = ".json") -> Path:
        """Location of a call artifact"""
        sanitized = sanitize_filename(file_name)
        if not sanitized:
            raise ValidationError(f"Invalid call fileName: {file_name!r}")
        return self.calls_path / f"{sanitized}{suffix}"

    def lock_for(self, file_name: str) -> asyncio.Lock:
        """Lock serializing read-modify-write cycles on one record"""
        key = sanitize_filename(file_name)
        lock = self._locks.get(key)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[key] = lock
        return lock

    async def exists(self, file_name: str) -> bool:
        return await asyncio.to_thread(self.path_for(file_name).is_file)

    def _read_sync(self, path: Path) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _write_sync(self, path: Path, payload: Any) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)

    async def read(self, file_name: str) -> CallRecord:
        """
        Load a call record.

        Raises:
            NotFoundError: no record exists for `file_name`
            ValidationError: the file is not a valid call record
        """
        path = self.path_for(file_name)
        try:
            data = await asyncio.to_thread(self._read_sync, path)
        except FileNotFoundError as e:
            raise NotFoundError(f"Call record not found: {file_name}") from e
        except json.JSONDecodeError as e:
            raise ValidationError(f"Call record {file_name} is not valid JSON: {e}") from e

        if not isinstance(data, dict):
            raise ValidationError(f"Call record {file_name} is not a JSON object")
        try:
            return CallRecord.model_validate(data)
        except PydanticValidationError as e:
            raise ValidationError(f"Call record {file_name} is invalid: {e}") from e

    async def write(self, file_name: str, record: CallRecord) -> Path:
        """Persist a call record, replacing any previous version"""
        path = self.path_for(file_name)
        await asyncio.to_thread(self._write_sync, path, record.to_json_dict())
        logger.debug(f"Call record written: {path}")
        return path

    async def update(self, file_name: str, updates: Dict[str, Any]) -> CallRecord:
        """
        Merge `updates` (camelCase keys, as on disk) into a stored record.

        Raises:
            NotFoundError: no record exists for `file_name`
        """
        async with self.lock_for(file_name):
            record = await self.read(file_name)
            updated = CallRecord.model_validate({**record.to_json_dict(), **updates})
            await self.write(file_name, updated)
            return updated

    async def add_relation(self, file_name: str, field: str, other: str) -> bool:
        """
        Append `other` to one adjacency list of a stored record.

        Args:
            file_name: Record to modify
            field: "duplicate_of" or "related_calls"
            other: fileName to add

        Returns:
            True if the list changed, False if `other` was already present

        Raises:
            NotFoundError: no record exists for `file_name`
        """
        if field not in RELATION_FIELDS:
            raise ValueError(f"Unknown relation field: {field}")

        async with self.lock_for(file_name):
            record = await self.read(file_name)
            current: List[str] = getattr(record, field)
            if other in current:
                return False
            current.append(other)
            await self.write(file_name, record)
            logger.info(f"Record {file_name}: added {other} to {field}")
            return True

    async def merge_relations(
        self,
        file_name: str,
        duplicate_of: Iterable[str],
        related_calls: Iterable[str],
        updates: Optional[Dict[str, Any]] = None
    ) -> CallRecord:
        """
        Union new relations into a stored record and apply other field updates.

        Stored entries keep their order and new ones are appended. The record is
        re-read under its lock, so relations appended by other pipelines since
        the caller loaded it are kept. A name listed as duplicate is dropped
        from the related list.

        Raises:
            NotFoundError: no record exists for `file_name`
        """
        async with self.lock_for(file_name):
            record = await self.read(file_name)
            duplicates = list(dict.fromkeys([*record.duplicate_of, *duplicate_of]))
            related = [
                name for name in dict.fromkeys([*record.related_calls, *related_calls])
                if name not in duplicates
            ]
            updated = CallRecord.model_validate({
                **record.to_json_dict(),
                **(updates or {}),
                "duplicateOf": duplicates,
                "relatedCalls": related,
            })
            await self.write(file_name, updated)
            return updated

    async def find_by_call_id(self, call_id: str) -> Optional[CallRecord]:
        """Scan the store for the record carrying `call_id`"""
        if not call_id:
            return None

        paths = await asyncio.to_thread(lambda: sorted(self.calls_path.glob("*.json")))
        for path in paths:
            try:
                data = await asyncio.to_thread(self._read_sync, path)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable call record {path.name}: {e}")
                continue
            if isinstance(data, dict) and data.get("callId") == call_id:
                return CallRecord.model_validate(data)
        return None

    async def write_embedding(self, file_name: str, vector: List[float]) -> bool:
        """Dump a raw embedding vector; failures are logged and reported as False"""
        try:
            path = self.path_for(file_name, ".emb")
            await asyncio.to_thread(self._write_sync, path, vector)
            logger.info(f"Embedding saved to: {path}")
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.warning(f"Failed to save embedding for {file_name}: {e}")
            return False

    async def read_embedding(self, file_name: str) -> Optional[List[float]]:
        """Load a dumped embedding vector, or None if absent or unreadable"""
        try:
            path = self.path_for(file_name, ".emb")
            data = await asyncio.to_thread(self._read_sync, path)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Failed to read embedding for {file_name}: {e}")
            return None

        if not isinstance(data, list) or not all(isinstance(v, (int, float)) for v in data):
            logger.warning(f"Embedding file for {file_name} does not hold a vector")
            return None
        return [float(v) for v in data]


# Singleton instance
_call_store: Optional[CallStore] = None


def get_call_store() -> CallStore:
    """Get or create call store singleton"""
    global _call_store
    if _call_store is None:
        _call_store = CallStore()
    return _call_store
