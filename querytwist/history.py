import datetime
import uuid
from typing import Iterator, List, Optional, Tuple

from .models import HistoryEntry, HistoryStatus, QueryResult

MANUAL_PROMPT_LABEL = "Manual Query"


class SessionHistory:
    """Append-only ledger of every query attempt, newest first."""

    def __init__(self):
        self._entries: List[HistoryEntry] = []

    def record(self, prompt_text: str, sql: str, result: QueryResult, manual: bool = False) -> HistoryEntry:
        entry = HistoryEntry(
            id=uuid.uuid4().hex,
            prompt_text=prompt_text or MANUAL_PROMPT_LABEL,
            sql=sql,
            result=result,
            status=HistoryStatus.SUCCESS if result.error is None else HistoryStatus.ERROR,
            timestamp=datetime.datetime.now(),
            is_manual=manual,
        )
        self._entries.insert(0, entry)
        return entry

    @property
    def entries(self) -> Tuple[HistoryEntry, ...]:
        return tuple(self._entries)

    def get(self, entry_id: str) -> Optional[HistoryEntry]:
        return next((e for e in self._entries if e.id == entry_id), None)

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[HistoryEntry]:
        return iter(self.entries)
