"""Skill mastery page."""

from __future__ import annotations

from datetime import date

import streamlit as st

from mexos.errors import MexosError
from mexos.skills.algorithm import LEVEL_THRESHOLDS
from mexos.ui.components import flash, render_heatmap


def render(get_live, get_store) -> None:
    """Render analytics for each tracked skill and a practice logger."""
    st.header("Skill Mastery")

    live = get_live()
    if not live.is_ready:
        st.info("Loading data...")
        return

    show_all = st.toggle("Include untracked skills", key="skills_show_all")
    analytics = live.skill_analytics(tracked_only=not show_all)
    if not analytics:
        st.info("No skills defined.")
    max_level = LEVEL_THRESHOLDS[-1][0]

    for a in analytics:
        with st.container(border=True):
            st.subheader(f"{a.skill_name} · Level {a.level} {a.level_name}")
            cols = st.columns(5)
            cols[0].metric("Points", a.total_points)
            cols[1].metric("Hours", f"{a.total_hours:.1f}")
            cols[2].metric("Streak", a.current_streak, help=f"Best: {a.longest_streak}")
            cols[3].metric("Consistency", f"{a.consistency_percent}%")
            cols[4].metric("Last practice", a.last_practice_date or "never")

            text = "Max level" if a.level >= max_level else f"{a.points_to_next_level} points to next level"
            st.progress(a.progress_percent, text=text)
            st.caption(
                f"Base {a.base_points} × {a.consistency_multiplier} consistency × "
                f"{a.recency_multiplier} recency + {a.streak_bonus} streak + {a.experience_bonus} experience"
            )
            render_heatmap(a.heatmap_data)

    _render_log_form(live, get_store)


def _render_log_form(live, get_store) -> None:
    if not live.skills:
        return
    st.subheader("Log practice")
    skills = {s.id: s for s in live.skills}
    skill_id = st.selectbox("Skill", list(skills), format_func=lambda sid: skills[sid].name, key="log_skill")
    with st.form("log_practice"):
        label = st.selectbox("Duration", skills[skill_id].tracking_options)
        day = st.date_input("Date", value=date.today(), max_value=date.today())
        if st.form_submit_button("Log"):
            try:
                get_store().log_practice(day.isoformat(), skill_id, label)
            except MexosError as e:
                st.error(f"Failed to log practice: {e}")
            else:
                flash(f"Logged {label} of {skills[skill_id].name}")
                st.rerun()
