"""Cockpit overview page."""

from __future__ import annotations

from datetime import date

import streamlit as st

from mexos.config import Config
from mexos.strategy.rules import campaign_progress, count_pending_rules, days_remaining
from mexos.ui.components import (
    DOC_STATUS_COLORS,
    get_workflow,
    render_decision_panel,
    render_triggered_card,
    status_badge,
)


def render(get_live, get_commands) -> None:
    """Render global status, the active campaign and the decision panel."""
    live = get_live()
    if not live.is_ready:
        st.info(f"Loading data: waiting for {', '.join(sorted(live.barrier.missing))}")
        return

    today = date.today()
    triggered = live.triggered_rules(today)
    workflow = get_workflow(get_commands)

    if Config.load().auto_open_decisions:
        workflow.auto_open(triggered, today)

    st.header(status_badge(live.global_status(today)))
    st.caption(today.strftime("%A, %B %d, %Y"))

    campaign = live.active_campaign(today)
    cols = st.columns(4)
    cols[0].metric("Passed CFU", live.passed_cfus())
    cols[1].metric("Overdue rules", len(triggered))
    cols[2].metric("Active campaign", campaign.name if campaign else "None")
    cols[3].metric("Pending rules", count_pending_rules(campaign))

    if campaign:
        remaining = days_remaining(campaign, today)
        st.progress(
            int(campaign_progress(campaign, today)),
            text=f"{campaign.name}: {remaining} days remaining" if remaining is not None else campaign.name,
        )

    if workflow.is_open:
        render_decision_panel(workflow)
    elif triggered:
        st.warning(f"{len(triggered)} strategic decision(s) overdue")
        for t in triggered:
            with st.container(border=True):
                render_triggered_card(t)
        if st.button("Decide now", type="primary", key="dashboard_decide_now"):
            workflow.open(triggered)
            st.rerun()

    _render_exams(live)
    _render_documents(live)


def _render_exams(live) -> None:
    st.subheader("Exams")
    flagged = {e.id for e in live.exams_with_active_rules()}
    if not live.exams:
        st.info("No exams yet.")
        return
    for exam in live.exams:
        marker = " ⚠️ pending rule" if exam.id in flagged else ""
        when = exam.exam_date or "no date"
        st.markdown(f"**{exam.name}** ({exam.cfu} CFU) · `{exam.status}` · {when}{marker}")
        if exam.strategy_notes:
            st.caption(exam.strategy_notes)


def _render_documents(live) -> None:
    st.subheader("Documents")
    if not live.bureaucracy:
        st.info("No documents yet.")
        return
    for doc in live.bureaucracy:
        color = DOC_STATUS_COLORS.get(doc.status, "gray")
        critical = " · critical" if doc.is_critical else ""
        expiry = f" · expires {doc.expiry_date}" if doc.expiry_date else ""
        st.markdown(f"**{doc.name}** :{color}[{doc.status}]{critical}{expiry}")
