"""
Dashboard Chat -- upload a CSV, refine the dashboard in chat, export to Power BI.
Layout: Sidebar (upload + export) | Workspace (spec preview) | Chat
"""
import sys
import io
from pathlib import Path

# Windows encoding fix
if sys.platform == "win32" and getattr(sys.stdout, "encoding", "") != "utf-8":
    sys.stdout = io.TextIOWrapper(
        sys.stdout.buffer, encoding="utf-8", errors="replace", line_buffering=True
    )

import streamlit as st
import pandas as pd

PROJECT_ROOT = Path(__file__).parent.parent.resolve()
sys.path.insert(0, str(PROJECT_ROOT))

from config.themes import palette_colors
from core.dashboard_spec import VISUAL_LABELS
from core.command_interpreter import ClassificationError
from core.dashboard_session import DashboardSession
from core.llm_client import build_collaborator
from generators.pbip_generator import to_zip_bytes


# === PAGE CONFIG (must be first Streamlit call) ===
st.set_page_config(
    page_title="Dashboard Chat",
    page_icon=None,
    layout="wide",
    initial_sidebar_state="expanded",
)


# =============================================================================
# SESSION STATE
# =============================================================================

if "session" not in st.session_state:
    st.session_state.session = DashboardSession(collaborator=build_collaborator())

if "messages" not in st.session_state:
    st.session_state.messages = []

if "loaded_file" not in st.session_state:
    st.session_state.loaded_file = None

session = st.session_state.session

# Sidebar buttons -> chat phrases
QUICK_ACTIONS = [
    ("Add card", "add a KPI card"),
    ("Add line", "add a line chart"),
    ("Add bar", "add a bar chart"),
    ("Add pie", "add a pie chart"),
    ("Add gauge", "add a gauge"),
    ("Add table", "add a table"),
    ("Top 10", "show top 10"),
    ("Vibrant colors", "use vibrant colors"),
    ("Remove last", "remove the last visual"),
]


def _visual_rows(spec):
    rows = []
    for i, v in enumerate(spec.get("visuals", []), 1):
        fields = [v.get(k) for k in ("xAxis", "nameKey", "dataKey", "yAxis") if v.get(k)]
        fields += v.get("columns") or []
        rows.append({
            "#": i,
            "Visual": VISUAL_LABELS.get(v.get("type"), v.get("type")),
            "Title": v.get("title", ""),
            "Fields": ", ".join(dict.fromkeys(fields)),
            "Top N": v.get("topN") or "",
        })
    return pd.DataFrame(rows)


def _swatches(colors):
    cells = "".join(
        f'<span style="display:inline-block;width:22px;height:22px;'
        f'margin-right:4px;border-radius:3px;background:{c}"></span>'
        for c in colors
    )
    st.markdown(cells, unsafe_allow_html=True)


# =============================================================================
# SIDEBAR -- upload + export
# =============================================================================

with st.sidebar:
    st.header("Data")
    uploaded = st.file_uploader("Upload a CSV file", type=["csv"])
    if uploaded is not None and uploaded.name != st.session_state.loaded_file:
        with st.spinner("Analyzing your data..."):
            reply = session.load_csv(uploaded.getvalue(), uploaded.name)
        st.session_state.loaded_file = uploaded.name
        st.session_state.messages = [{"role": "assistant", "content": reply}]

    if session.table is not None:
        st.caption(f"{session.table.name}: {session.table.row_count} rows, "
                   f"{session.table.column_count} columns")
        for header, col_type in session.classification.items():
            st.markdown(f"- `{header}` : {col_type}")

    if session.spec is not None:
        st.divider()
        st.header("Quick actions")
        left, right = st.columns(2)
        for i, (label, phrase) in enumerate(QUICK_ACTIONS):
            target = left if i % 2 == 0 else right
            if target.button(label, key=f"quick_{i}", use_container_width=True):
                st.session_state.messages.append({"role": "user", "content": phrase})
                reply = session.send(phrase)
                st.session_state.messages.append({"role": "assistant", "content": reply})

    st.divider()
    st.header("Export")
    if session.spec is not None:
        if st.button("Undo last change", use_container_width=True):
            if not session.undo():
                st.info("Nothing to undo.")
            else:
                st.session_state.messages.append(
                    {"role": "assistant", "content": "Reverted the last change."}
                )

        try:
            bundle = session.export_package()
        except ClassificationError as e:
            st.warning(str(e))
        else:
            st.download_button(
                "Download Power BI project (.zip)",
                data=to_zip_bytes(bundle),
                file_name=f"{session.table.name}_pbip.zip",
                mime="application/zip",
                use_container_width=True,
            )
            st.download_button(
                "Download dashboard JSON",
                data=session.export_spec_json(),
                file_name="dashboard_spec.json",
                mime="application/json",
                use_container_width=True,
            )
            for w in bundle["warnings"]:
                st.caption(f"Note: {w}")
    else:
        st.caption("Upload a CSV to enable export.")


# =============================================================================
# MAIN -- workspace + chat
# =============================================================================

workspace, chat = st.columns([3, 2])

with workspace:
    spec = session.spec
    if spec is None:
        st.title("Dashboard Chat")
        st.write("Upload a CSV file in the sidebar to get a starting dashboard.")
    else:
        st.title(spec.get("title", ""))
        _swatches(palette_colors(spec))
        st.dataframe(_visual_rows(spec), hide_index=True, use_container_width=True)
        with st.expander("Data preview"):
            st.dataframe(session.table.to_frame().head(20), use_container_width=True)
        with st.expander("Specification JSON"):
            st.json(spec)

with chat:
    for msg in st.session_state.messages:
        with st.chat_message(msg["role"]):
            st.markdown(msg["content"])

    prompt = st.chat_input("Ask for a change, e.g. 'add a pie chart' or 'show top 5'")
    if prompt:
        st.session_state.messages.append({"role": "user", "content": prompt})
        with st.spinner("Updating..."):
            reply = session.send(prompt)
        st.session_state.messages.append({"role": "assistant", "content": reply})
        st.rerun()
