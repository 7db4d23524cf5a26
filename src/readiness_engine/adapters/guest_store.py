"""Guest answer buffers.

Two IGuestPersistence implementations:
    FileGuestStore     - one JSON document per (guest_id, survey_id) on local disk
    InMemoryGuestStore - process-local dict, for tests and single-process demos

The JSON document mirrors what a browser would keep in local storage:
``{"surveyId", "answers": [{"questionId", "answer"}], "currentStep",
"lastUpdated"}``. Every save is a full overwrite.
"""

import asyncio
import hashlib
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from readiness_engine.core.domain import Answer, GuestBuffer
from readiness_engine.core.errors import GuestBufferNotFoundError
from readiness_engine.observability import get_logger

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def buffer_to_document(buffer: GuestBuffer) -> dict[str, Any]:
    """Serialise a buffer to its local-storage JSON shape."""
    return {
        "guestId": buffer.guest_id,
        "surveyId": buffer.survey_id,
        "answers": [{"questionId": a.question_id, "answer": a.value} for a in buffer.answers],
        "currentStep": buffer.current_step,
        "lastUpdated": buffer.last_updated.isoformat() if buffer.last_updated else None,
    }


def buffer_from_document(guest_id: str, survey_id: int, document: dict[str, Any]) -> GuestBuffer:
    """Parse a local-storage JSON document; malformed entries are skipped."""
    answers: list[Answer] = []
    for item in document.get("answers") or []:
        if not isinstance(item, dict) or "questionId" not in item:
            continue
        try:
            question_id = int(item["questionId"])
        except (TypeError, ValueError):
            continue
        value = item.get("answer")
        answers.append(Answer(question_id=question_id, value=value if isinstance(value, int) else None))

    last_updated = document.get("lastUpdated")
    return GuestBuffer(
        guest_id=guest_id,
        survey_id=survey_id,
        answers=answers,
        current_step=int(document.get("currentStep") or 0),
        last_updated=datetime.fromisoformat(last_updated) if last_updated else None,
    )


class FileGuestStore:
    """File-backed guest buffers under ``root_dir``.

    Guest tokens are hashed into file names so that arbitrary client input
    never becomes a path component. Blocking file I/O runs in a worker
    thread.

    Args:
        root_dir: Directory holding the buffer files; created on first save.
    """

    def __init__(self, root_dir: str | Path) -> None:
        self._root = Path(root_dir)

    def _path(self, guest_id: str, survey_id: int) -> Path:
        digest = hashlib.sha256(guest_id.encode("utf-8")).hexdigest()
        return self._root / f"{digest}-{survey_id}.json"

    async def save(
        self,
        guest_id: str,
        survey_id: int,
        answers: list[Answer],
        current_step: int,
    ) -> GuestBuffer:
        buffer = GuestBuffer(
            guest_id=guest_id,
            survey_id=survey_id,
            answers=list(answers),
            current_step=current_step,
            last_updated=_utcnow(),
        )
        await asyncio.to_thread(self._write, self._path(guest_id, survey_id), buffer_to_document(buffer))
        return buffer

    async def load(self, guest_id: str, survey_id: int) -> GuestBuffer:
        path = self._path(guest_id, survey_id)
        try:
            document = await asyncio.to_thread(self._read, path)
        except FileNotFoundError as exc:
            raise GuestBufferNotFoundError(
                f"No guest buffer for survey {survey_id}."
            ) from exc
        except json.JSONDecodeError as exc:
            logger.warning("Discarding unreadable guest buffer", path=str(path), error=str(exc))
            raise GuestBufferNotFoundError(
                f"No readable guest buffer for survey {survey_id}."
            ) from exc
        return buffer_from_document(guest_id, survey_id, document)

    async def clear(self, guest_id: str, survey_id: int) -> None:
        path = self._path(guest_id, survey_id)
        await asyncio.to_thread(path.unlink, missing_ok=True)
        logger.debug("Guest buffer cleared", survey_id=survey_id)

    def _write(self, path: Path, document: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = path.with_suffix(".tmp")
        tmp_path.write_text(json.dumps(document), encoding="utf-8")
        os.replace(tmp_path, path)

    @staticmethod
    def _read(path: Path) -> dict[str, Any]:
        return json.loads(path.read_text(encoding="utf-8"))


class InMemoryGuestStore:
    """Guest buffers held in a dict keyed by (guest_id, survey_id)."""

    def __init__(self) -> None:
        self._buffers: dict[tuple[str, int], GuestBuffer] = {}

    async def save(
        self,
        guest_id: str,
        survey_id: int,
        answers: list[Answer],
        current_step: int,
    ) -> GuestBuffer:
        buffer = GuestBuffer(
            guest_id=guest_id,
            survey_id=survey_id,
            answers=list(answers),
            current_step=current_step,
            last_updated=_utcnow(),
        )
        self._buffers[(guest_id, survey_id)] = buffer
        return buffer

    async def load(self, guest_id: str, survey_id: int) -> GuestBuffer:
        buffer = self._buffers.get((guest_id, survey_id))
        if buffer is None:
            raise GuestBufferNotFoundError(f"No guest buffer for survey {survey_id}.")
        return buffer

    async def clear(self, guest_id: str, survey_id: int) -> None:
        self._buffers.pop((guest_id, survey_id), None)
