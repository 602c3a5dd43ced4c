import json
from dataclasses import dataclass
from typing import Optional, Sequence

from .models import ColumnProfile, Row

PLACEHOLDER = "?"

# ================== LLM PROMPTS ==================
BASE_RULES = """
You are a specialized SQL generation agent.
Translate the user's question into ONE SQL query for an in-memory DuckDB engine.
Output ONLY the raw SQL (no backticks, no prose, no explanations).

Data source:
- The data is passed to the engine as a parameter. Always write the data source as ? , e.g. SELECT * FROM ?
- Never invent or use any other table name, even if the question mentions one.
- When the question needs the data more than once (sub-queries, EXCEPT), use ? again each time.

Rules:
1. Prefer exact column names from the list below; wrap names with spaces or symbols in double quotes.
2. Assume dynamic typing: numbers are numbers, strings are strings.
3. For "how many X" questions count distinct entities with COUNT(DISTINCT ...), not rows.
4. For fuzzy or partial text matches use LIKE with % wildcards on LOWER(column).
5. For "only" / "exclusively associated with" questions, subtract the entities that also match anything else (EXCEPT).
6. If the user asks for a chart or graph, return the SQL that produces the data for it.
"""

FEW_SHOT_EXAMPLES = (
    (
        "How many customers bought a laptop?",
        "SELECT COUNT(DISTINCT customer_id) AS customers FROM ? WHERE LOWER(product) = 'laptop'",
    ),
    (
        "Show orders for anything like 'phone'",
        "SELECT * FROM ? WHERE LOWER(product) LIKE '%phone%'",
    ),
    (
        "Which customers bought only laptops?",
        "SELECT DISTINCT customer_id FROM ? WHERE LOWER(product) = 'laptop' "
        "EXCEPT SELECT DISTINCT customer_id FROM ? WHERE LOWER(product) <> 'laptop'",
    ),
    (
        "Total amount per region, largest first",
        "SELECT region, SUM(amount) AS total_amount FROM ? GROUP BY region ORDER BY total_amount DESC",
    ),
)


@dataclass(frozen=True)
class InstructionPayload:
    system_instruction: str
    user_question: str
    placeholder: str = PLACEHOLDER


def _examples_block() -> str:
    return "\n\n".join(f"Question: {q}\nSQL: {sql}" for q, sql in FEW_SHOT_EXAMPLES)


def _kinds_block(profile: Optional[ColumnProfile]) -> str:
    if not profile:
        return ""
    lines = [
        f"- {label}: {', '.join(cols)}"
        for label, cols in (
            ("Numeric", profile.numeric),
            ("Categorical", profile.categorical),
            ("Date/time", profile.temporal),
        )
        if cols
    ]
    return "\n# COLUMN TYPES\n" + "\n".join(lines) + "\n"


def compose(
    user_question: str,
    columns: Sequence[str],
    sample_row: Row,
    profile: Optional[ColumnProfile] = None,
) -> InstructionPayload:
    """Schema-aware instruction for the model. Same inputs, same payload."""
    instruction = (
        BASE_RULES
        + "\n# TABLE\n- Name: ? (parameter placeholder, the only valid data source)"
        + "\n- Columns: " + ", ".join(columns)
        + "\n\n# SAMPLE ROW\n" + json.dumps(sample_row, ensure_ascii=False, default=str)
        + "\n" + _kinds_block(profile)
        + "\n# EXAMPLES\n" + _examples_block()
        + "\n"
    )
    return InstructionPayload(system_instruction=instruction, user_question=user_question)
