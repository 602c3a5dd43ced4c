import logging
import time
from typing import Optional

from .engine import QueryEngine
from .errors import EngineUnavailableError
from .models import Dataset, QueryResult

logger = logging.getLogger(__name__)


class QueryExecutor:
    """Runs SQL against a dataset. Engine failures come back as QueryResult.error, never raised."""

    def __init__(self, engine: Optional[QueryEngine], engine_name: str = "DuckDB"):
        self.engine = engine
        self.engine_name = getattr(engine, "name", engine_name)

    def execute(self, sql: str, dataset: Dataset) -> QueryResult:
        if self.engine is None or not self.engine.available:
            return QueryResult.failure(f"{self.engine_name} not loaded")

        start = time.perf_counter()
        try:
            rows = self.engine.query(sql, dataset)
        except EngineUnavailableError as e:
            return QueryResult.failure(str(e))
        except Exception as e:
            logger.info("Execution error: %s", e)
            return QueryResult.failure(str(e) or "Unknown SQL execution error")
        elapsed_ms = (time.perf_counter() - start) * 1000.0

        logger.info("Query returned %d rows in %.2fms", len(rows), elapsed_ms)
        return QueryResult(rows=tuple(rows), execution_time_ms=elapsed_ms)
