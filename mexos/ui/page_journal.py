"""Decision journal page: what was decided about each campaign's rules."""

from __future__ import annotations

from datetime import datetime

import streamlit as st

from mexos.activity import group_by_campaign, outcome_of, summarize_decisions

OUTCOME_BADGES = {
    "resolved": ":green[resolved]",
    "deferred": ":orange[snoozed]",
    "edited": ":blue[edited]",
    "failed": ":red[failed]",
}

COMMAND_LABELS = {
    "execute": "Executed action",
    "mark_safe": "Marked safe",
    "snooze": "Snoozed",
    "add_rule": "Added rule",
    "set_status": "Changed status",
    "delete_rule": "Deleted rule",
}


def render(get_journal, get_live) -> None:
    """Render the journal grouped by campaign."""
    st.header("Decision Journal")
    st.caption("Rule decisions per campaign, most recent first.")

    live = get_live()
    names = {c.id: c.name for c in live.campaigns} if live.is_ready else {}

    col1, col2, col3 = st.columns([2, 1, 1])
    with col1:
        campaign_id = st.selectbox(
            "Campaign",
            [None, *names],
            format_func=lambda cid: "All campaigns" if cid is None else names.get(cid, cid),
            key="journal_campaign",
        )
    with col2:
        limit = st.number_input("Entries", min_value=10, max_value=200, value=50, step=10, key="journal_limit")
    with col3:
        failed_only = st.toggle("Failures only", key="journal_failed_only")

    entries = get_journal().read(limit=int(limit), campaign_id=campaign_id, failed_only=failed_only)
    if not entries:
        st.info("No decisions recorded yet. Resolve an overdue rule to start the journal.")
        return

    counts = summarize_decisions(entries)
    cols = st.columns(4)
    cols[0].metric("Resolved", counts["resolved"])
    cols[1].metric("Snoozed", counts["deferred"])
    cols[2].metric("Rule edits", counts["edited"])
    cols[3].metric("Failed", counts["failed"])

    for cid, group in group_by_campaign(entries).items():
        st.subheader(names.get(cid, cid))
        for entry in group:
            _render_entry(entry)


def _render_entry(entry: dict) -> None:
    try:
        when = datetime.fromisoformat(entry.get("timestamp", "")).strftime("%b %d, %H:%M")
    except (ValueError, TypeError):
        when = "unknown time"

    command = entry.get("command", "")
    with st.container(border=True):
        st.markdown(
            f"{OUTCOME_BADGES[outcome_of(entry)]} **{COMMAND_LABELS.get(command, command)}** · {when}"
        )
        if entry.get("condition") or entry.get("action"):
            st.markdown(f"IF *{entry.get('condition') or '?'}* THEN **{entry.get('action') or '?'}**")
        if entry.get("details") and entry["details"] != "manual":
            st.caption(entry["details"])
        if entry.get("error"):
            st.error(entry["error"])
