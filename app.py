import asyncio

import pandas as pd
import streamlit as st

from querytwist.charts import ChartSpec, ChartType, compatible_charts, default_chart, render_chart
from querytwist.config import PREVIEW_ROWS, UI_VALIDATION_DELAY_S, configure_logging, load_settings
from querytwist.data import export_filename, load_sample_dataset, parse_csv, to_csv_text
from querytwist.engine import DuckDBEngine
from querytwist.errors import IngestionError
from querytwist.executor import QueryExecutor
from querytwist.models import HistoryStatus
from querytwist.orchestrator import PipelineState, QueryOrchestrator
from querytwist.profiler import profile
from querytwist.translator import GeminiTranslator
from querytwist.validator import SQLValidator

# ================== CONFIG ==================
st.set_page_config(page_title="QueryTwist — Ask Your CSV", page_icon="🧮", layout="wide")
SETTINGS = load_settings()
configure_logging(SETTINGS.log_level)

# Gemini key (optional; manual SQL still works without it)
API_KEY = SETTINGS.api_key or st.secrets.get("GOOGLE_API_KEY", "")

STATUS_TEXT = {
    PipelineState.TRANSLATING: "Generating query…",
    PipelineState.VALIDATING_SYNTAX: "Checking syntax…",
    PipelineState.INVALID: "Invalid syntax",
    PipelineState.EXECUTING: "Running query…",
}


# ================== SESSION ==================
def get_orchestrator() -> QueryOrchestrator:
    if "orchestrator" not in st.session_state:
        engine = DuckDBEngine()
        st.session_state.orchestrator = QueryOrchestrator(
            translator=GeminiTranslator(
                API_KEY,
                model_name=SETTINGS.model_name,
                temperature=SETTINGS.temperature,
                timeout=SETTINGS.translation_timeout_s,
            ),
            validator=SQLValidator(engine, fail_open=SETTINGS.validator_fail_open),
            executor=QueryExecutor(engine),
            validation_delay=SETTINGS.validation_delay_or(UI_VALIDATION_DELAY_S),
        )
    return st.session_state.orchestrator


def start_session(orch, dataset):
    orch.load_dataset(dataset)
    st.session_state.pop("chart", None)
    st.session_state.sql_editor = ""


orch = get_orchestrator()

# ================== SIDEBAR ==================
with st.sidebar:
    st.header("📦 Data Source")
    uploaded_file = st.file_uploader("Upload CSV", type=["csv"])
    if uploaded_file is not None and st.button("Load uploaded file", type="primary"):
        try:
            start_session(orch, parse_csv(uploaded_file.getvalue(), uploaded_file.name or "data.csv"))
        except IngestionError as e:
            st.error(f"Failed to load data: {e}")

    st.caption("No data? Use the in-memory sample (cancer research biomarkers).")
    if st.button("Load sample dataset"):
        start_session(orch, load_sample_dataset(SETTINGS.sample_csv_url))

    if orch.session.dataset is not None:
        st.divider()
        if st.button("🔌 Disconnect source"):
            orch.reset()
            st.session_state.pop("chart", None)
            st.rerun()
    if not API_KEY:
        st.warning("GOOGLE_API_KEY is not set: question translation is disabled, manual SQL still runs.")

# ================== MAIN UI ==================
st.title("🧮 QueryTwist — Ask Questions of Your Data")
session = orch.session

if session.dataset is None:
    st.info("Upload a CSV or load the sample dataset in the sidebar to proceed.")
    st.stop()

ds = session.dataset
st.success(f"{ds.name}: {len(ds):,} rows × {len(ds.columns)} cols")
with st.expander("Data preview", expanded=not session.history.entries):
    st.dataframe(pd.DataFrame(list(ds.sample(PREVIEW_ROWS)), columns=list(ds.columns)), use_container_width=True)

# ===== Ask =====
st.markdown("### 💬 Ask a Question")
question = st.text_area(
    "Your question",
    value=session.prompt,
    height=100,
    placeholder="e.g., How many colorectal cases are there? or Show me therapy counts per organ",
)
status = st.empty()


def show_state(state):
    text = STATUS_TEXT.get(state)
    if text:
        status.caption(text)


orch.on_state_change = show_state
if st.button("Generate Analysis", type="primary", disabled=not question.strip() or orch.busy):
    with st.spinner("Asking Gemini…"):
        asyncio.run(orch.submit(question))
    st.session_state.sql_editor = session.sql
status.empty()

# ===== SQL console =====
if session.sql or session.result is not None:
    st.markdown("### 🖥️ SQL Operation")
    if session.syntax_valid is True:
        st.caption("✅ Valid SQL")
    elif session.syntax_valid is False:
        st.caption("❌ Invalid syntax")
    if "pending_sql" in st.session_state:
        st.session_state.sql_editor = st.session_state.pop("pending_sql")
    st.session_state.setdefault("sql_editor", session.sql)
    edited = st.text_area("SQL", key="sql_editor", height=120)
    if st.button("▶ Run Query", disabled=not edited.strip()):
        orch.run_edited_sql(edited)

# ===== Results =====
result = session.result
if result is not None:
    st.markdown("### 📊 Results")
    if result.error:
        st.error(result.error)
    else:
        meta, export = st.columns([3, 1])
        if result.execution_time_ms is not None:
            meta.caption(f"{len(result.rows):,} rows · {result.execution_time_ms:.2f}ms")
        export.download_button(
            "⬇️ Export", data=to_csv_text(result.rows), file_name=export_filename(), mime="text/csv",
            disabled=not result.rows,
        )

        tab_table, tab_chart = st.tabs(["Data Table", "Visualization"])
        with tab_table:
            if result.rows:
                st.dataframe(pd.DataFrame(list(result.rows)), use_container_width=True)
            else:
                st.info("Query returned no rows.")
        with tab_chart:
            spec = default_chart(result.rows, st.session_state.get("chart"))
            if spec is None:
                st.warning("Unable to visualize this result: at least one numeric column is needed.")
            else:
                prof = profile(result.rows)
                charts = compatible_charts(prof)
                cols = list(result.rows[0].keys())
                c1, c2, c3 = st.columns(3)
                kind = c1.selectbox("Chart", charts, index=charts.index(spec.chart_type), format_func=lambda c: c.value)
                x = c2.selectbox("X axis", cols, index=cols.index(spec.x))
                y = c3.selectbox("Value", prof.numeric, index=prof.numeric.index(spec.y))
                spec = ChartSpec(chart_type=ChartType(kind), x=x, y=y, temporal_x=x in prof.temporal)
                st.session_state.chart = spec
                st.pyplot(render_chart(result.rows, spec), use_container_width=False, clear_figure=True)

# ===== History =====
if session.history.entries:
    st.divider()
    st.markdown("### 🕘 Session History")
    for entry in session.history.entries:
        dot = "🟢" if entry.status is HistoryStatus.SUCCESS else "🔴"
        left, right = st.columns([6, 1])
        left.markdown(f"{dot} **{entry.timestamp:%H:%M}** · {entry.prompt_text}")
        left.code(entry.sql or "-- no SQL generated", language="sql")
        if right.button("Load", key=f"load-{entry.id}"):
            orch.load_history_entry(entry.id)
            st.session_state.pending_sql = entry.sql
            st.rerun()
