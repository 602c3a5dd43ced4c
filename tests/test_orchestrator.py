import asyncio
from unittest.mock import MagicMock

import pytest

from querytwist.errors import NoDatasetError
from querytwist.executor import QueryExecutor
from querytwist.history import MANUAL_PROMPT_LABEL
from querytwist.models import ColumnKind, Dataset, HistoryStatus
from querytwist.orchestrator import PipelineState, QueryOrchestrator
from querytwist.prompts import compose
from querytwist.validator import SQLValidator

from .conftest import FakeTranslator

S = PipelineState


def build(engine, translator, dataset, **kwargs):
    orch = QueryOrchestrator(
        translator=translator,
        validator=kwargs.pop("validator", SQLValidator(engine)),
        executor=kwargs.pop("executor", QueryExecutor(engine)),
        **kwargs,
    )
    orch.load_dataset(dataset)
    return orch


class TestSubmit:
    @pytest.mark.asyncio
    async def test_end_to_end(self, engine, sales_dataset):
        translator = FakeTranslator("SELECT category, amount FROM ? WHERE amount > 15")
        states = []
        orch = build(engine, translator, sales_dataset, on_state_change=states.append)

        result = await orch.submit("  categories over 15  ")

        assert result.rows == ({"category": "B", "amount": 20},)
        assert result.error is None
        assert result.execution_time_ms >= 0
        assert states == [S.TRANSLATING, S.VALIDATING_SYNTAX, S.EXECUTING, S.DONE]

        session = orch.session
        assert session.state is S.DONE
        assert session.prompt == "categories over 15"
        assert session.sql == "SELECT category, amount FROM ? WHERE amount > 15"
        assert session.result is result
        assert session.syntax_valid is True

        (entry,) = session.history.entries
        assert entry.status is HistoryStatus.SUCCESS
        assert entry.prompt_text == "categories over 15"
        assert entry.result is result

        payload, question = translator.calls[0]
        assert question == "categories over 15"
        assert payload.placeholder == "?"

    @pytest.mark.asyncio
    async def test_invalid_syntax_never_executes(self, engine, sales_dataset):
        executor = MagicMock(wraps=QueryExecutor(engine))
        states = []
        orch = build(
            engine, FakeTranslator("SELEC * FORM ?"), sales_dataset, executor=executor, on_state_change=states.append
        )

        result = await orch.submit("everything")

        executor.execute.assert_not_called()
        assert states == [S.TRANSLATING, S.VALIDATING_SYNTAX, S.INVALID, S.DONE]
        assert result.rows == ()
        assert result.error.startswith("SQL Syntax Error: ")
        assert orch.session.syntax_valid is False
        (entry,) = orch.session.history.entries
        assert entry.status is HistoryStatus.ERROR
        assert entry.sql == "SELEC * FORM ?"

    @pytest.mark.asyncio
    async def test_translation_failure_is_recorded_with_empty_sql(self, engine, sales_dataset):
        states = []
        orch = build(engine, FakeTranslator(error="model unavailable"), sales_dataset, on_state_change=states.append)

        result = await orch.submit("anything")

        assert result.error == "model unavailable"
        assert states == [S.TRANSLATING, S.DONE]
        (entry,) = orch.session.history.entries
        assert entry.sql == ""
        assert entry.status is HistoryStatus.ERROR

    @pytest.mark.asyncio
    async def test_execution_error_is_recorded(self, engine, sales_dataset):
        orch = build(engine, FakeTranslator("SELECT nonexistent_col FROM ?"), sales_dataset)
        result = await orch.submit("broken")
        assert result.rows == ()
        assert result.error
        assert orch.session.history.entries[0].status is HistoryStatus.ERROR

    @pytest.mark.asyncio
    async def test_blank_question_is_ignored(self, orchestrator, translator):
        assert await orchestrator.submit("   ") is None
        assert translator.calls == []
        assert len(orchestrator.session.history) == 0
        assert orchestrator.session.state is S.IDLE

    @pytest.mark.asyncio
    async def test_submission_while_in_flight_is_ignored(self, orchestrator, translator):
        translator.gate = asyncio.Event()
        first = asyncio.create_task(orchestrator.submit("first"))
        for _ in range(3):
            await asyncio.sleep(0)

        assert orchestrator.busy
        assert orchestrator.session.state is S.TRANSLATING
        assert await orchestrator.submit("second") is None
        assert orchestrator.run_edited_sql("SELECT 1") is None

        translator.gate.set()
        result = await first
        assert result.ok
        assert not orchestrator.busy
        assert len(translator.calls) == 1
        assert len(orchestrator.session.history) == 1

    @pytest.mark.asyncio
    async def test_composer_gets_schema_and_profile(self, engine, translator, sales_dataset):
        composer = MagicMock(wraps=compose)
        orch = build(engine, translator, sales_dataset, composer=composer)
        await orch.submit("q")
        composer.assert_called_once_with(
            "q", ["category", "amount"], {"category": "A", "amount": 10}, orch.session.profile
        )

    @pytest.mark.asyncio
    async def test_validation_delay(self, engine, translator, sales_dataset):
        orch = build(engine, translator, sales_dataset, validation_delay=0.01)
        result = await orch.submit("q")
        assert result.ok

    @pytest.mark.asyncio
    async def test_requires_dataset(self, engine, translator):
        orch = QueryOrchestrator(translator, SQLValidator(engine), QueryExecutor(engine))
        with pytest.raises(NoDatasetError):
            await orch.submit("q")
        with pytest.raises(NoDatasetError):
            orch.run_edited_sql("SELECT 1")


class TestHistoryLedger:
    @pytest.mark.asyncio
    async def test_n_attempts_n_entries_newest_first(self, orchestrator, translator):
        await orchestrator.submit("all rows")
        first = orchestrator.session.history.entries[0]
        first_snapshot = (first.id, first.prompt_text, first.sql, first.result, first.status)

        translator.error = "boom"
        await orchestrator.submit("failing")
        orchestrator.run_edited_sql("SELECT amount FROM ?")

        entries = orchestrator.session.history.entries
        assert len(entries) == 3
        assert [e.prompt_text for e in entries] == [MANUAL_PROMPT_LABEL, "failing", "all rows"]
        assert [e.status for e in entries] == [HistoryStatus.SUCCESS, HistoryStatus.ERROR, HistoryStatus.SUCCESS]
        last = entries[2]
        assert (last.id, last.prompt_text, last.sql, last.result, last.status) == first_snapshot


class TestManualRun:
    def test_skips_translation(self, engine, translator, sales_dataset):
        states = []
        orch = build(engine, translator, sales_dataset, on_state_change=states.append)

        result = orch.run_edited_sql("SELECT SUM(amount) AS total FROM ?")

        assert result.rows == ({"total": 30},)
        assert translator.calls == []
        assert states == [S.VALIDATING_SYNTAX, S.EXECUTING, S.DONE]
        (entry,) = orch.session.history.entries
        assert entry.is_manual
        assert entry.prompt_text == MANUAL_PROMPT_LABEL

    def test_invalid_manual_sql_is_recorded(self, orchestrator):
        result = orchestrator.run_edited_sql("SELEC * FORM ?")
        assert result.error.startswith("SQL Syntax Error")
        assert orchestrator.session.history.entries[0].status is HistoryStatus.ERROR

    def test_write_statements_are_refused_and_recorded(self, orchestrator):
        result = orchestrator.run_edited_sql("CREATE TABLE keep AS SELECT * FROM ?")
        assert result.error == "SQL Syntax Error: Only SELECT statements are allowed, got CREATE"
        assert orchestrator.session.syntax_valid is False
        assert orchestrator.session.history.entries[0].status is HistoryStatus.ERROR

    def test_blank_sql_is_ignored(self, orchestrator):
        assert orchestrator.run_edited_sql("  ") is None
        assert len(orchestrator.session.history) == 0


class TestReplayAndLifecycle:
    @pytest.mark.asyncio
    async def test_loading_an_entry_restores_the_view(self, orchestrator):
        await orchestrator.submit("all rows")
        orchestrator.run_edited_sql("SELEC nope")
        older = orchestrator.session.history.entries[1]

        entry = orchestrator.load_history_entry(older.id)

        session = orchestrator.session
        assert entry is older
        assert session.prompt == "all rows"
        assert session.sql == older.sql
        assert session.result == older.result
        assert session.result is not older.result
        assert session.syntax_valid is True
        assert len(session.history) == 2
        assert session.state is S.DONE

    def test_loaded_rows_are_copies(self, orchestrator):
        orchestrator.run_edited_sql("SELECT category FROM ? ORDER BY category")
        entry = orchestrator.session.history.entries[0]

        orchestrator.load_history_entry(entry.id)
        orchestrator.session.result.rows[0]["category"] = "edited"

        assert entry.result.rows[0] == {"category": "A"}
        assert orchestrator.session.history.entries[0].result.rows[0] == {"category": "A"}

    def test_loading_a_manual_entry_clears_the_prompt(self, orchestrator):
        orchestrator.run_edited_sql("SELECT 1 AS x")
        entry = orchestrator.session.history.entries[0]
        orchestrator.session.prompt = "typed something"
        orchestrator.load_history_entry(entry.id)
        assert orchestrator.session.prompt == ""

    def test_unknown_entry(self, orchestrator):
        with pytest.raises(KeyError):
            orchestrator.load_history_entry("missing")

    def test_new_dataset_starts_a_fresh_session(self, orchestrator):
        orchestrator.run_edited_sql("SELECT 1 AS x")
        other = Dataset.from_rows("other.csv", [{"day": "2024-01-01", "qty": 3}])

        session = orchestrator.load_dataset(other)

        assert orchestrator.session is session
        assert session.dataset is other
        assert len(session.history) == 0
        assert session.profile.kind_of("day") is ColumnKind.TEMPORAL
        assert session.profile.numeric == ["qty"]

    def test_reset_drops_dataset(self, orchestrator):
        orchestrator.reset()
        assert orchestrator.session.dataset is None
        assert orchestrator.session.state is S.IDLE
