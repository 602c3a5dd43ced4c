"""Shared fixtures: small datasets, a real in-memory engine and canned translators."""

import pytest

from querytwist.engine import DuckDBEngine
from querytwist.errors import TranslationError
from querytwist.executor import QueryExecutor
from querytwist.models import Dataset
from querytwist.orchestrator import QueryOrchestrator
from querytwist.validator import SQLValidator


class FakeTranslator:
    """Returns canned SQL (or raises) and remembers what it was asked."""

    def __init__(self, sql="SELECT * FROM ?", error=None):
        self.sql = sql
        self.error = error
        self.calls = []
        self.gate = None

    async def translate(self, payload, question):
        self.calls.append((payload, question))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise TranslationError(self.error)
        return self.sql


@pytest.fixture
def sales_dataset():
    return Dataset.from_rows(
        "sales.csv",
        [
            {"category": "A", "amount": 10},
            {"category": "B", "amount": 20},
        ],
    )


@pytest.fixture
def engine():
    eng = DuckDBEngine()
    yield eng
    eng.close()


@pytest.fixture
def translator():
    return FakeTranslator()


@pytest.fixture
def orchestrator(engine, translator, sales_dataset):
    orch = QueryOrchestrator(
        translator=translator,
        validator=SQLValidator(engine),
        executor=QueryExecutor(engine),
    )
    orch.load_dataset(sales_dataset)
    return orch
