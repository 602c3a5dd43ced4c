import asyncio
import enum
import logging
from dataclasses import dataclass, field, replace
from typing import Callable, Optional

from .config import PROFILE_SAMPLE_ROWS
from .errors import NoDatasetError, TranslationError
from .executor import QueryExecutor
from .history import MANUAL_PROMPT_LABEL, SessionHistory
from .models import ColumnProfile, Dataset, HistoryEntry, QueryResult
from .profiler import profile
from .prompts import InstructionPayload, compose
from .translator import Translator
from .validator import SQLValidator

logger = logging.getLogger(__name__)


class PipelineState(enum.Enum):
    IDLE = "idle"
    TRANSLATING = "translating"
    VALIDATING_SYNTAX = "validating_syntax"
    INVALID = "invalid"
    EXECUTING = "executing"
    DONE = "done"


@dataclass
class Session:
    """Everything one analysis session owns. Only the orchestrator writes to it."""

    dataset: Optional[Dataset] = None
    profile: ColumnProfile = field(default_factory=ColumnProfile)
    history: SessionHistory = field(default_factory=SessionHistory)
    state: PipelineState = PipelineState.IDLE
    prompt: str = ""
    sql: str = ""
    result: Optional[QueryResult] = None
    syntax_valid: Optional[bool] = None


class QueryOrchestrator:
    """translate -> validate -> execute -> record, one submission at a time."""

    def __init__(
        self,
        translator: Translator,
        validator: SQLValidator,
        executor: QueryExecutor,
        composer: Callable[..., InstructionPayload] = compose,
        validation_delay: float = 0.0,
        on_state_change: Optional[Callable[[PipelineState], None]] = None,
        session: Optional[Session] = None,
    ):
        self.translator = translator
        self.validator = validator
        self.executor = executor
        self.composer = composer
        self.validation_delay = validation_delay
        self.on_state_change = on_state_change
        self.session = session or Session()
        self._in_flight = False

    @property
    def busy(self) -> bool:
        return self._in_flight

    # ---------- dataset lifecycle ----------
    def load_dataset(self, dataset: Dataset) -> Session:
        """Swap in a new dataset; profile and history start over."""
        self.session = Session(dataset=dataset, profile=profile(dataset.sample(PROFILE_SAMPLE_ROWS)))
        logger.info("Session started on %s (%d rows)", dataset.name, len(dataset))
        return self.session

    def reset(self) -> Session:
        self.session = Session()
        return self.session

    # ---------- pipeline ----------
    def _transition(self, state: PipelineState) -> None:
        self.session.state = state
        if self.on_state_change is not None:
            self.on_state_change(state)

    def _require_dataset(self) -> Dataset:
        if self.session.dataset is None:
            raise NoDatasetError("Load a dataset before running queries")
        return self.session.dataset

    def _finish(self, prompt_text: str, sql: str, result: QueryResult, manual: bool = False) -> QueryResult:
        self.session.result = result
        self.session.history.record(prompt_text, sql, result, manual=manual)
        self._transition(PipelineState.DONE)
        return result

    def _validate_and_execute(self, prompt_text: str, sql: str, dataset: Dataset, manual: bool) -> QueryResult:
        self.session.sql = sql
        self._transition(PipelineState.VALIDATING_SYNTAX)
        outcome = self.validator.validate(sql)
        self.session.syntax_valid = outcome.valid
        if not outcome.valid:
            self._transition(PipelineState.INVALID)
            return self._finish(prompt_text, sql, QueryResult.failure(f"SQL Syntax Error: {outcome.error}"), manual)

        self._transition(PipelineState.EXECUTING)
        return self._finish(prompt_text, sql, self.executor.execute(sql, dataset), manual)

    async def submit(self, question: str) -> Optional[QueryResult]:
        """Run a natural language question end to end. None when the submission is ignored."""
        question = (question or "").strip()
        if not question:
            return None
        if self._in_flight:
            logger.warning("Ignoring submission while another query is in flight")
            return None
        dataset = self._require_dataset()

        self._in_flight = True
        try:
            s = self.session
            s.prompt, s.sql, s.result, s.syntax_valid = question, "", None, None
            self._transition(PipelineState.TRANSLATING)
            payload = self.composer(question, list(dataset.columns), dataset.head_row, s.profile)
            try:
                sql = await self.translator.translate(payload, question)
            except TranslationError as e:
                logger.warning("Translation failed: %s", e)
                s.syntax_valid = False
                return self._finish(question, "", QueryResult.failure(str(e)))

            s.sql = sql
            if self.validation_delay > 0:
                await asyncio.sleep(self.validation_delay)
            return self._validate_and_execute(question, sql, dataset, manual=False)
        finally:
            self._in_flight = False

    def run_edited_sql(self, sql: str) -> Optional[QueryResult]:
        """Validate and run operator-edited SQL, skipping translation."""
        if not (sql or "").strip():
            return None
        if self._in_flight:
            logger.warning("Ignoring manual run while another query is in flight")
            return None
        dataset = self._require_dataset()

        self._in_flight = True
        try:
            self.session.result = None
            return self._validate_and_execute(MANUAL_PROMPT_LABEL, sql, dataset, manual=True)
        finally:
            self._in_flight = False

    # ---------- replay ----------
    def load_history_entry(self, entry_id: str) -> HistoryEntry:
        """Show a past attempt again. Nothing runs and the ledger is untouched."""
        entry = self.session.history.get(entry_id)
        if entry is None:
            raise KeyError(entry_id)
        s = self.session
        s.prompt = "" if entry.is_manual else entry.prompt_text
        s.sql = entry.sql
        s.result = replace(entry.result, rows=tuple(dict(r) for r in entry.result.rows))
        s.syntax_valid = entry.result.ok
        return entry
