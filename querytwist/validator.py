import logging
from typing import Optional

from .engine import QueryEngine
from .errors import EngineUnavailableError, ReadOnlyViolationError
from .models import ValidationOutcome

logger = logging.getLogger(__name__)


class SQLValidator:
    """Syntax-only check of untrusted SQL against the engine's parser.

    Anything other than SELECT statements is rejected here, before it can run.

    When the engine is not loaded the validator fails open by default (the SQL
    passes and execution reports the real problem). Pass ``fail_open=False`` to
    reject instead.
    """

    def __init__(self, engine: Optional[QueryEngine], fail_open: bool = True):
        self.engine = engine
        self.fail_open = fail_open

    def _unavailable(self, reason: str) -> ValidationOutcome:
        if self.fail_open:
            logger.warning("Skipping SQL validation: %s", reason)
            return ValidationOutcome(valid=True)
        return ValidationOutcome(valid=False, error=reason)

    def validate(self, sql: str) -> ValidationOutcome:
        if not (sql or "").strip():
            return ValidationOutcome(valid=False, error="Empty SQL statement")
        if self.engine is None or not self.engine.available:
            return self._unavailable("SQL engine not loaded")
        try:
            count = self.engine.parse(sql)
        except EngineUnavailableError as e:
            return self._unavailable(str(e))
        except ReadOnlyViolationError as e:
            logger.warning("Rejected SQL: %s", e)
            return ValidationOutcome(valid=False, error=str(e))
        except Exception as e:
            logger.debug("SQL failed to parse: %s", e)
            return ValidationOutcome(valid=False, error=str(e) or "Syntax error")
        if count == 0:
            return ValidationOutcome(valid=False, error="Empty SQL statement")
        return ValidationOutcome(valid=True)
