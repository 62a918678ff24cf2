"""
Record store for fully transformed chapter documents.

Records are written once per chapter by batch producers and read many times by
clients. Every call goes straight to the backing store; there is no in-process
copy. Identifiers are range-checked before storage is touched.
"""

import json
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from pydantic import ValidationError as PydanticValidationError

from shared.errors import (
    GatewayException,
    NotFoundError,
    OutOfRangeIdError,
    ValidationError,
    utc_now_iso,
)
from shared.logging import get_logger
from shared.metrics import MetricsCollector
from shared.result import Err, Ok, Result
from ..adapters.kv_store import KeyValueStore
from ..domain.records import ChapterRecord


DEFAULT_MIN_ID = 1
DEFAULT_MAX_ID = 114


def _validation_message(exc: PydanticValidationError) -> str:
    first = exc.errors()[0]
    location = ".".join(str(part) for part in first.get("loc", ())) or "body"
    return f"{location}: {first.get('msg', 'invalid value')}"


class RecordStore:
    """Get / put / bulk-put / status over ``chapter:{id}`` keys."""

    KEY_PREFIX = "chapter"

    def __init__(
        self,
        backend: KeyValueStore,
        *,
        min_id: int = DEFAULT_MIN_ID,
        max_id: int = DEFAULT_MAX_ID,
        metrics: Optional[MetricsCollector] = None,
    ):
        self.backend = backend
        self.min_id = min_id
        self.max_id = max_id
        self.metrics = metrics
        self.logger = get_logger("edge.record_store")

    @property
    def namespace(self) -> str:
        return self.backend.namespace

    def make_key(self, chapter: int) -> str:
        return f"{self.KEY_PREFIX}:{chapter}"

    def parse_id(self, value: Any) -> Result[int, OutOfRangeIdError]:
        """Accept ints and base-10 digit strings inside the configured range."""
        chapter: Optional[int] = None
        if isinstance(value, int) and not isinstance(value, bool):
            chapter = value
        elif isinstance(value, str) and value.strip().isdigit():
            chapter = int(value.strip())

        if chapter is None or not self.min_id <= chapter <= self.max_id:
            return Err(OutOfRangeIdError(value, self.min_id, self.max_id))
        return Ok(chapter)

    async def get_record(self, chapter: Any) -> Result[Dict[str, Any], GatewayException]:
        """Fetch a stored chapter document."""
        parsed = self.parse_id(chapter)
        if not parsed.is_ok:
            return parsed
        chapter = parsed.unwrap()

        raw = await self.backend.get(self.make_key(chapter))
        if raw is None:
            self._record("get", "miss")
            self.logger.info("Chapter not found", chapter=chapter)
            return Err(NotFoundError(
                "Chapter data not available in KV storage",
                {"chapter": chapter},
                error="Chapter not found",
            ))

        self._record("get", "hit")
        return Ok(json.loads(raw))

    async def put_record(
        self,
        chapter: Any,
        record: Union[ChapterRecord, Mapping[str, Any], None],
    ) -> Result[Dict[str, Any], GatewayException]:
        """Validate and store one chapter, overwriting any previous version."""
        parsed = self.parse_id(chapter)
        if not parsed.is_ok:
            return parsed
        chapter = parsed.unwrap()

        if not isinstance(record, ChapterRecord):
            if not isinstance(record, Mapping):
                return Err(self._invalid_record(chapter, "Chapter data must be a JSON object"))
            try:
                record = ChapterRecord.model_validate(dict(record))
            except PydanticValidationError as exc:
                return Err(self._invalid_record(chapter, _validation_message(exc)))

        stored_at = utc_now_iso()
        document = record.to_document(chapter, stored_at)
        await self.backend.put(self.make_key(chapter), json.dumps(document, ensure_ascii=False))

        self._record("put", "success")
        self.logger.info("Chapter stored", chapter=chapter, verse_count=record.verse_count)
        return Ok({
            "success": True,
            "chapter": chapter,
            "verseCount": record.verse_count,
            "message": "Chapter stored successfully",
            "storedAt": stored_at,
        })

    async def bulk_put(self, records: Mapping[Any, Any]) -> Dict[str, Any]:
        """Store each entry independently and report per-id outcomes."""
        results: Dict[str, Any] = {"success": 0, "failed": 0, "chapters": {}}

        for raw_id, body in records.items():
            label = str(raw_id)
            try:
                outcome = await self.put_record(raw_id, body)
            except GatewayException as exc:
                outcome = Err(exc)

            if outcome.is_ok:
                results["success"] += 1
                results["chapters"][label] = "success"
            else:
                results["failed"] += 1
                results["chapters"][label] = f"{outcome.error.error}: {outcome.error.message}"

        self.logger.info(
            "Bulk population completed",
            success=results["success"],
            failed=results["failed"],
        )
        return results

    async def get_status(self, sample_ids: Iterable[int]) -> Dict[str, Any]:
        """Probe a fixed sample of chapters instead of scanning the namespace."""
        status: Dict[str, Any] = {"available": 0, "missing": 0, "chapters": {}}

        for chapter in sample_ids:
            raw = await self.backend.get(self.make_key(chapter))
            if raw is None:
                status["missing"] += 1
                status["chapters"][str(chapter)] = {"available": False}
                continue

            document = json.loads(raw)
            verses = document.get("verses") if isinstance(document, dict) else None
            status["available"] += 1
            status["chapters"][str(chapter)] = {
                "available": True,
                "verseCount": len(verses) if isinstance(verses, dict) else 0,
                "storedAt": document.get("storedAt") if isinstance(document, dict) else None,
            }

        return status

    async def get_raw(self, key: str) -> Optional[str]:
        """Stored text for any key in the record namespace, unvalidated."""
        return await self.backend.get(key)

    def _invalid_record(self, chapter: int, message: str) -> ValidationError:
        self._record("put", "invalid")
        return ValidationError(message, {"chapter": chapter}, error="Invalid chapter data")

    def _record(self, operation: str, result: str) -> None:
        if self.metrics:
            self.metrics.record_store_operation(operation, result)
