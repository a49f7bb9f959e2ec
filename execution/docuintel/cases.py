"""
Case Store

Persistence collaborator for case records. The engine only needs the
create/get/list contract; InMemoryCaseStore backs local runs and tests, and
a database-backed store can be swapped in behind the same interface.
"""

import uuid
import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass
class CaseRecord:
    """A case as seen by the engine."""
    title: str
    document_text: str = ""
    owner_id: Optional[str] = None
    status: str = "open"
    case_id: Optional[str] = None
    created_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    def to_dict(self) -> dict:
        return asdict(self)


class CaseStore(ABC):
    """Contract consumed by the streaming session and the API."""

    @abstractmethod
    def create_case(self, record: CaseRecord) -> str:
        """Persist a record and return its id."""

    @abstractmethod
    def get_case(self, case_id: str) -> Optional[CaseRecord]:
        """Return the record, or None when it does not exist."""

    @abstractmethod
    def list_cases(self, filter: Optional[dict] = None) -> list[CaseRecord]:
        """Return records whose fields equal every key/value in filter."""


class InMemoryCaseStore(CaseStore):
    """Thread-safe dict-backed CaseStore."""

    def __init__(self):
        self._cases: dict[str, CaseRecord] = {}
        self._lock = threading.Lock()

    def create_case(self, record: CaseRecord) -> str:
        case_id = record.case_id or f"case-{uuid.uuid4()}"
        record.case_id = case_id
        with self._lock:
            self._cases[case_id] = record
        logger.info(f"Created case {case_id}: {record.title[:50]}")
        return case_id

    def get_case(self, case_id: str) -> Optional[CaseRecord]:
        with self._lock:
            return self._cases.get(case_id)

    def list_cases(self, filter: Optional[dict] = None) -> list[CaseRecord]:
        with self._lock:
            records = list(self._cases.values())
        if not filter:
            return records
        return [
            r for r in records
            if all(getattr(r, key, None) == value for key, value in filter.items())
        ]
