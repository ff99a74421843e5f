"""Exception types raised by mexos commit operations."""

from __future__ import annotations


class MexosError(Exception):
    """Base class for errors a caller is expected to present to the user."""


class PersistenceError(MexosError):
    """A read or write against the document store failed."""


class EntityNotFoundError(MexosError):
    def __init__(self, collection: str, doc_id: str) -> None:
        super().__init__(f"No document '{doc_id}' in collection '{collection}'")
        self.collection = collection
        self.doc_id = doc_id


class RuleNotFoundError(MexosError):
    def __init__(self, campaign_id: str, rule_index: int, rule_id: str | None = None) -> None:
        ref = f"id {rule_id}" if rule_id else f"index {rule_index}"
        super().__init__(f"Campaign '{campaign_id}' has no rule with {ref}")
        self.campaign_id = campaign_id
        self.rule_index = rule_index
        self.rule_id = rule_id
