"""Shared UI components for mexos Streamlit pages."""

from __future__ import annotations

import html

import streamlit as st

from mexos.models import HeatmapDay, TriggeredRule
from mexos.strategy.workflow import SNOOZE_OPTIONS, DecisionWorkflow, DismissalState

STATUS_LABELS = {
    "green": ("\U0001f7e2", "SYSTEMS NOMINAL"),
    "yellow": ("\U0001f7e1", "CAUTION ADVISED"),
    "red": ("\U0001f534", "CRITICAL ALERT"),
}

RULE_STATUS_EMOJI = {
    "pending": "⏳",
    "triggered": "⚡",
    "safe": "✅",
}

DOC_STATUS_COLORS = {
    "valid": "green",
    "expiring_soon": "orange",
    "expired": "red",
    "pending": "blue",
    "unknown": "gray",
}

# Intensity 0-3, empty to on-target
HEATMAP_COLORS = ["#1f2430", "#0e4429", "#26a641", "#39d353"]

FLASH_KEY = "flash_message"
WORKFLOW_KEY = "decision_workflow"
DISMISSAL_KEY = "decision_dismissal"


def status_badge(status: str) -> str:
    """Return emoji plus label for a global status color."""
    emoji, label = STATUS_LABELS.get(status, ("⚪", status.upper()))
    return f"{emoji} {label}"


def rule_badge(status: str) -> str:
    return RULE_STATUS_EMOJI.get(status, "❔")


def format_overdue(days: int) -> str:
    return f"{days} day overdue" if days == 1 else f"{days} days overdue"


def heatmap_weeks(cells: list[HeatmapDay], width: int = 7) -> list[list[HeatmapDay]]:
    """Split the heatmap into rows of ``width`` days, oldest row first."""
    return [cells[i:i + width] for i in range(0, len(cells), width)]


def heatmap_html(cells: list[HeatmapDay]) -> str:
    """Render heatmap cells as a grid of colored squares."""
    rows = []
    for week in heatmap_weeks(cells):
        squares = "".join(
            f'<span title="{html.escape(c.date)}: {c.minutes} min" '
            f'style="display:inline-block;width:12px;height:12px;margin:1px;border-radius:2px;'
            f'background:{HEATMAP_COLORS[max(0, min(3, c.intensity))]}"></span>'
            for c in week
        )
        rows.append(f"<div style=\"line-height:0\">{squares}</div>")
    return "".join(rows)


def flash(message: str) -> None:
    """Queue a toast that survives the next rerun."""
    st.session_state[FLASH_KEY] = message


def show_flash() -> None:
    message = st.session_state.pop(FLASH_KEY, None)
    if message:
        st.toast(message)


def render_triggered_card(t: TriggeredRule) -> None:
    """Render one overdue rule with its linked exams."""
    st.markdown(f"**{t.campaign_name}** — :red[{format_overdue(t.days_overdue)}]")
    st.markdown(f":orange[IF] {t.rule.condition}  \n:red[THEN] {t.rule.action}")
    st.caption(f"Deadline: {t.rule.deadline}")
    if t.linked_exams:
        st.markdown(
            "**Linked exams:** "
            + ", ".join(f"{e.name} ({e.cfu} CFU, {e.status})" for e in t.linked_exams)
        )


def render_heatmap(cells: list[HeatmapDay]) -> None:
    st.markdown(heatmap_html(cells), unsafe_allow_html=True)


def get_workflow(get_commands) -> DecisionWorkflow:
    """Return this session's decision workflow, creating it on first use."""
    if DISMISSAL_KEY not in st.session_state:
        st.session_state[DISMISSAL_KEY] = DismissalState()
    if WORKFLOW_KEY not in st.session_state:
        st.session_state[WORKFLOW_KEY] = DecisionWorkflow(
            get_commands(), dismissal=st.session_state[DISMISSAL_KEY]
        )
    return st.session_state[WORKFLOW_KEY]


def decision_choice_key(triggered: TriggeredRule) -> str:
    """Widget key that survives reruns, even for rules with no stored id."""
    return f"decision_choice_{triggered.campaign_id}_{triggered.rule_index}"


def _report(workflow: DecisionWorkflow, ok: bool) -> None:
    if ok:
        flash(workflow.last_message)
        st.rerun()
    else:
        st.error(workflow.error)


def render_decision_panel(workflow: DecisionWorkflow) -> None:
    """Render the current step of an open decision workflow."""
    current = workflow.current
    if current is None:
        return

    with st.container(border=True):
        st.error(f"STRATEGIC DECISION REQUIRED — reviewing {workflow.position}")
        render_triggered_card(current)

        suggestions = workflow.suggestions
        choice = st.radio(
            "What do you want to do?",
            range(len(suggestions)),
            format_func=lambda i: suggestions[i].description,
            key=decision_choice_key(current),
        )
        busy = workflow.is_executing

        cols = st.columns(2 + len(SNOOZE_OPTIONS) + 1)
        if cols[0].button("Execute", type="primary", disabled=busy, key="decision_execute"):
            workflow.select(suggestions[choice])
            _report(workflow, workflow.execute())
        if cols[1].button("Mark safe", disabled=busy, key="decision_safe"):
            _report(workflow, workflow.mark_safe())
        for col, days in zip(cols[2:], SNOOZE_OPTIONS):
            if col.button(f"Snooze {days}d", disabled=busy, key=f"decision_snooze_{days}"):
                _report(workflow, workflow.snooze(days))
        if cols[-1].button("Decide later", key="decision_later"):
            workflow.decide_later()
            st.rerun()
