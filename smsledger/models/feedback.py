from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field

from smsledger.models.transaction import CATEGORIES


PromptState = Literal[
    "NO_PROMPT_NEEDED",
    "PROMPT_PENDING",
    "RESOLVED",
    "SKIPPED",
]


class CategoryOption(BaseModel):
    label: str
    value: str


def default_category_options() -> List[CategoryOption]:
    return [CategoryOption(label=c, value=c) for c in CATEGORIES]


class FeedbackPrompt(BaseModel):
    transaction_id: str
    candidate_categories: List[CategoryOption] = Field(default_factory=default_category_options)
    state: PromptState = "PROMPT_PENDING"
    selected_category: Optional[str] = None
    satisfaction_rating: Optional[int] = None
    # user's choice that has not reached the ledger yet (patch failed)
    unsaved_fields: Dict[str, object] = Field(default_factory=dict)

    @property
    def outcome(self) -> str:
        if self.state == "SKIPPED":
            return "skipped"
        if self.state == "RESOLVED":
            return f"selected({self.selected_category})" if self.selected_category else "selected"
        return "pending"


# ── Notification actions ────────────────────────────────
@dataclass(frozen=True)
class SatisfactionAction:
    rating: int


@dataclass(frozen=True)
class CategoryAction:
    category: str


@dataclass(frozen=True)
class OpenAppAction:
    """Body tap or an action id we do not know: show the in-app prompt."""

    action_id: Optional[str] = None


NotificationAction = Union[SatisfactionAction, CategoryAction, OpenAppAction]

SATISFACTION_ACTIONS: Dict[str, int] = {
    "SATISFACTION_YES": 5,    # worth it
    "SATISFACTION_MAYBE": 3,  # maybe
    "SATISFACTION_NO": 1,     # not worth it
}

CATEGORY_ACTIONS: Dict[str, str] = {f"CAT_{c.upper()}": c for c in CATEGORIES}


def parse_action(action_id: Optional[str]) -> NotificationAction:
    if action_id in SATISFACTION_ACTIONS:
        return SatisfactionAction(rating=SATISFACTION_ACTIONS[action_id])
    if action_id in CATEGORY_ACTIONS:
        return CategoryAction(category=CATEGORY_ACTIONS[action_id])
    return OpenAppAction(action_id=action_id)
