"""Campaigns and decision rules page."""

from __future__ import annotations

from datetime import date, timedelta

import streamlit as st

from mexos.errors import MexosError
from mexos.strategy.rules import campaign_progress, days_remaining, is_rule_overdue
from mexos.ui.components import flash, get_workflow, render_decision_panel, rule_badge


def render(get_live, get_commands) -> None:
    """Render every campaign with its rules and an add-rule form."""
    st.header("Strategy")

    live = get_live()
    if not live.is_ready:
        st.info("Loading data...")
        return

    today = date.today()
    workflow = get_workflow(get_commands)
    triggered = live.triggered_rules(today)

    if workflow.is_open:
        render_decision_panel(workflow)
    elif triggered and st.button(f"Decide now ({len(triggered)} overdue)", type="primary"):
        workflow.open(triggered)
        st.rerun()

    if not live.campaigns:
        st.info("No campaigns yet. Run `mexos init` to load the demo profile.")
        return

    exam_names = {e.id: e.name for e in live.exams}
    for campaign in live.campaigns:
        with st.expander(f"{campaign.name} · {campaign.status}", expanded=campaign.status == "active"):
            remaining = days_remaining(campaign, today)
            st.progress(int(campaign_progress(campaign, today)))
            st.caption(
                f"{campaign.start_date} → {campaign.end_date}"
                + (f" · {remaining} days remaining" if remaining is not None else "")
            )
            if campaign.focus_areas:
                st.markdown("**Focus:** " + ", ".join(campaign.focus_areas))
            if campaign.linked_exams:
                st.markdown(
                    "**Exams:** " + ", ".join(exam_names.get(eid, f"`{eid}`") for eid in campaign.linked_exams)
                )

            st.markdown("**Rules**")
            if not campaign.rules:
                st.caption("No rules defined.")
            for i, rule in enumerate(campaign.rules):
                _render_rule(get_commands, campaign.id, i, rule, today)

            _render_add_rule_form(get_commands, campaign.id, today)


def _render_rule(get_commands, campaign_id: str, index: int, rule, today: date) -> None:
    overdue = " :red[OVERDUE]" if is_rule_overdue(rule, today) else ""
    cols = st.columns([8, 1])
    cols[0].markdown(
        f"{rule_badge(rule.status)} IF {rule.condition} THEN **{rule.action}** BY {rule.deadline}{overdue}"
    )
    if cols[1].button("Delete", key=f"delete_rule_{rule.id}"):
        try:
            get_commands().delete_rule(campaign_id, index, rule_id=rule.id)
        except MexosError as e:
            st.error(f"Failed to delete rule: {e}")
        else:
            flash("Rule deleted")
            st.rerun()


def _render_add_rule_form(get_commands, campaign_id: str, today: date) -> None:
    with st.form(f"add_rule_{campaign_id}", clear_on_submit=True):
        condition = st.text_input("IF", placeholder="Project topic not assigned")
        action = st.text_input("THEN", placeholder="DROP Web Info Management")
        deadline = st.date_input("BY", value=today + timedelta(days=7))
        if st.form_submit_button("Add rule"):
            if not condition or not action:
                st.warning("Condition and action are both required.")
                return
            try:
                get_commands().add_rule(campaign_id, condition, action, deadline.isoformat())
            except MexosError as e:
                st.error(f"Failed to add rule: {e}")
            else:
                flash("Rule added")
                st.rerun()
