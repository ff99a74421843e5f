"""Streamlit cockpit for mexos.

Four views:
1. Dashboard: global status, CFU, overdue rules, decision panel
2. Strategy: campaigns and their rules
3. Skills: mastery levels and practice heatmaps
4. Journal: committed decisions
"""

from __future__ import annotations

import argparse
from pathlib import Path

import streamlit as st

from mexos.activity import DecisionJournal
from mexos.config import Config
from mexos.seed import seed_store
from mexos.storage.db import get_connection
from mexos.storage.live import LiveData
from mexos.storage.repository import Repository
from mexos.storage.store import DocumentStore
from mexos.strategy.commands import RuleCommands
from mexos.ui import page_dashboard, page_journal, page_skills, page_strategy
from mexos.ui.components import show_flash


def _db_path() -> Path:
    parser = argparse.ArgumentParser()
    parser.add_argument("--db", default=None)
    args, _ = parser.parse_known_args()
    return Path(args.db) if args.db else Config.load().db_path


@st.cache_resource
def get_store() -> DocumentStore:
    store = DocumentStore(Repository(get_connection(_db_path())))
    seed_store(store)
    return store


@st.cache_resource
def get_live() -> LiveData:
    return LiveData(get_store())


def get_journal() -> DecisionJournal:
    config = Config.load()
    config.db_path = _db_path()
    return DecisionJournal(config.resolved_journal_path)


def get_commands() -> RuleCommands:
    return RuleCommands(get_store(), get_journal())


def main() -> None:
    st.set_page_config(page_title="mexos", page_icon="\U0001f9ed", layout="wide")
    st.title("mexos")
    st.caption("Campaigns, decision rules, exams and skills in one cockpit")

    show_flash()
    page = st.sidebar.radio("Navigate", ["Dashboard", "Strategy", "Skills", "Journal"])

    if page == "Dashboard":
        page_dashboard.render(get_live, get_commands)
    elif page == "Strategy":
        page_strategy.render(get_live, get_commands)
    elif page == "Skills":
        page_skills.render(get_live, get_store)
    elif page == "Journal":
        page_journal.render(get_journal, get_live)


if __name__ == "__main__":
    main()
