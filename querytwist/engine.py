import logging
import re
from typing import List, Optional, Protocol

import duckdb

from .errors import EngineUnavailableError, ReadOnlyViolationError
from .models import Dataset, Row, frame_to_rows
from .prompts import PLACEHOLDER

logger = logging.getLogger(__name__)

BOUND_VIEW = "__querytwist_data__"

# strings, quoted identifiers and comments are copied as-is; only a bare ? is bound
_TOKEN_RE = re.compile(
    r"""'(?:[^']|'')*'|"(?:[^"]|"")*"|--[^\n]*|/\*.*?\*/|""" + re.escape(PLACEHOLDER),
    re.DOTALL,
)


def bind_placeholder(sql: str, target: str = BOUND_VIEW) -> str:
    return _TOKEN_RE.sub(lambda m: target if m.group(0) == PLACEHOLDER else m.group(0), sql)


class QueryEngine(Protocol):
    name: str

    @property
    def available(self) -> bool:
        ...

    def parse(self, sql: str) -> int:
        ...

    def query(self, sql: str, dataset: Dataset) -> List[Row]:
        ...


class DuckDBEngine:
    """In-memory DuckDB. `?` in SQL text is the dataset handed to `query`.

    The connection has no filesystem access and only runs SELECT statements,
    so a query cannot leave tables, files or settings behind.
    """

    name = "DuckDB"

    def __init__(self, database: str = ":memory:", connect: bool = True):
        self.database = database
        self._con: Optional[duckdb.DuckDBPyConnection] = None
        if connect:
            self.connect()

    def connect(self) -> "DuckDBEngine":
        if self._con is None:
            # no file reads or writes, no extension installs
            self._con = duckdb.connect(database=self.database, config={"enable_external_access": False})
            logger.debug("DuckDB %s connected", duckdb.__version__)
        return self

    def close(self) -> None:
        if self._con is not None:
            self._con.close()
            self._con = None

    @property
    def available(self) -> bool:
        return self._con is not None

    def _require(self) -> duckdb.DuckDBPyConnection:
        if self._con is None:
            raise EngineUnavailableError(f"{self.name} not loaded")
        return self._con

    @staticmethod
    def _check_read_only(con: duckdb.DuckDBPyConnection, sql: str) -> int:
        statements = con.extract_statements(sql)
        for stmt in statements:
            if stmt.type != duckdb.StatementType.SELECT:
                raise ReadOnlyViolationError(f"Only SELECT statements are allowed, got {stmt.type.name}")
        return len(statements)

    def parse(self, sql: str) -> int:
        """Parse only, nothing runs.

        Returns the statement count. Raises duckdb.ParserException on bad syntax
        and ReadOnlyViolationError when any statement is not a SELECT.
        """
        return self._check_read_only(self._require(), bind_placeholder(sql))

    def query(self, sql: str, dataset: Dataset) -> List[Row]:
        con = self._require()
        bound = bind_placeholder(sql)
        self._check_read_only(con, bound)
        con.register(BOUND_VIEW, dataset.frame)
        try:
            return frame_to_rows(con.execute(bound).fetchdf())
        finally:
            con.unregister(BOUND_VIEW)
