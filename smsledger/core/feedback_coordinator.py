"""
Human-in-the-loop correction for auto-detected transactions.

Per transaction id:

    NO_PROMPT_NEEDED -> PROMPT_PENDING -> RESOLVED | SKIPPED

A prompt is opened for records the classifier was unsure about (category
still "Other" or confidence under the forwarding threshold). The user then
picks a category in-app, taps a notification button, or dismisses it.
Only one prompt may be pending per id; repeated triggers are no-ops.
Finished prompts are kept in a bounded history (oldest evicted first).
"""
from __future__ import annotations

from collections import OrderedDict
from typing import Any, Callable, Dict, List, Optional

from loguru import logger

from smsledger.config import settings
from smsledger.errors import DeliveryError, InvalidCategory, UnknownPrompt
from smsledger.models.feedback import (
    CategoryAction,
    FeedbackPrompt,
    NotificationAction,
    OpenAppAction,
    PromptState,
    SatisfactionAction,
    parse_action,
)
from smsledger.models.transaction import DEFAULT_CATEGORY, Transaction
from smsledger.services.ledger_client import LedgerClient
from smsledger.services.session import SessionProvider
from smsledger.utils.notifications import build_category_notification


Notifier = Callable[[Dict[str, Any]], None]
OpenAppHandler = Callable[[str], None]

HISTORY_SIZE = 500


class FeedbackCoordinator:
    def __init__(
        self,
        client: LedgerClient,
        notifier: Optional[Notifier] = None,
        on_open_app: Optional[OpenAppHandler] = None,
        threshold: Optional[float] = None,
        history_size: int = HISTORY_SIZE,
    ) -> None:
        self._client = client
        self._notifier = notifier
        self._on_open_app = on_open_app
        self.threshold = threshold if threshold is not None else settings.FORWARD_THRESHOLD
        self.history_size = history_size
        # open prompts only; resolved / skipped ones move to _finished
        self._prompts: Dict[str, FeedbackPrompt] = {}
        self._finished: OrderedDict[str, FeedbackPrompt] = OrderedDict()

    # ── queries ─────────────────────────────────────────
    def needs_prompt(self, transaction: Transaction) -> bool:
        if transaction.category == DEFAULT_CATEGORY:
            return True
        return transaction.confidence is not None and transaction.confidence < self.threshold

    def state(self, transaction_id: str) -> PromptState:
        prompt = self.get(transaction_id)
        return prompt.state if prompt else "NO_PROMPT_NEEDED"

    def get(self, transaction_id: str) -> Optional[FeedbackPrompt]:
        prompt = self._prompts.get(transaction_id)
        return prompt if prompt is not None else self._finished.get(transaction_id)

    def pending(self) -> List[FeedbackPrompt]:
        return list(self._prompts.values())

    # ── transitions ─────────────────────────────────────
    def maybe_prompt(self, transaction: Transaction) -> Optional[FeedbackPrompt]:
        """
        Open a prompt if the record needs one.
        Returns None when no prompt is needed or one is already pending.
        """
        if transaction.id is None:
            raise ValueError("Cannot prompt for a transaction without a ledger id")
        if not self.needs_prompt(transaction):
            return None
        if transaction.id in self._prompts:
            logger.debug("Prompt already pending txn={}", transaction.id)
            return None
        if self.state(transaction.id) == "SKIPPED":
            logger.debug("Prompt was dismissed txn={}", transaction.id)
            return None

        prompt = FeedbackPrompt(transaction_id=transaction.id)
        self._finished.pop(transaction.id, None)
        self._prompts[transaction.id] = prompt
        logger.info("Feedback prompt opened txn={} confidence={}", transaction.id, transaction.confidence)

        if self._notifier is not None:
            try:
                self._notifier(build_category_notification(transaction))
            except Exception as e:
                # in-app prompt stays open
                logger.warning("Category notification failed txn={} err={}", transaction.id, str(e))
        return prompt

    async def select_category(self, transaction_id: str, category: str, session: SessionProvider) -> FeedbackPrompt:
        prompt = self._require_pending(transaction_id)
        if category not in {o.value for o in prompt.candidate_categories}:
            raise InvalidCategory(f"Unknown category: {category}")
        await self._apply(prompt, {"category": category}, session)
        return prompt

    async def handle_action(
        self, action_id: Optional[str], transaction_id: str, session: SessionProvider
    ) -> NotificationAction:
        """
        Apply a notification response.

        - pending prompt: patched and resolved like an in-app choice
        - skipped prompt: ignored, dismissal is final
        - resolved or unknown id: patched as-is, stored prompt untouched
          until the ledger accepts the change
        """
        action = parse_action(action_id)

        if isinstance(action, OpenAppAction):
            logger.info("Notification opened app txn={} action={}", transaction_id, action_id)
            if self._on_open_app is not None:
                self._on_open_app(transaction_id)
            return action

        if isinstance(action, SatisfactionAction):
            fields: Dict[str, Any] = {"satisfaction_rating": action.rating}
        elif isinstance(action, CategoryAction):
            fields = {"category": action.category}
        else:
            raise TypeError(f"Unhandled notification action: {action!r}")

        pending = self._prompts.get(transaction_id)
        if pending is not None:
            await self._apply(pending, fields, session)
            return action

        finished = self._finished.get(transaction_id)
        if finished is not None and finished.state == "SKIPPED":
            logger.info("Action ignored for skipped prompt txn={} action={}", transaction_id, action_id)
            return action

        # tray notification outlived its prompt
        try:
            await self._client.patch(transaction_id, fields, session)
        except DeliveryError as e:
            logger.warning("Late notification action not saved txn={} err={}", transaction_id, str(e))
            raise
        if finished is not None:
            self._record(finished, fields)
        logger.info("Late notification action saved txn={} fields={}", transaction_id, fields)
        return action

    def skip(self, transaction_id: str) -> FeedbackPrompt:
        prompt = self._require_pending(transaction_id)
        prompt.state = "SKIPPED"
        self._finish(prompt)
        logger.info("Feedback prompt skipped txn={}", transaction_id)
        return prompt

    async def retry(self, transaction_id: str, session: SessionProvider) -> FeedbackPrompt:
        """Re-send a user answer whose patch failed earlier."""
        prompt = self._require_pending(transaction_id)
        if not prompt.unsaved_fields:
            raise UnknownPrompt(f"No unsaved answer for transaction {transaction_id}")
        await self._apply(prompt, dict(prompt.unsaved_fields), session)
        return prompt

    # ── internals ───────────────────────────────────────
    def _require_pending(self, transaction_id: str) -> FeedbackPrompt:
        prompt = self._prompts.get(transaction_id)
        if prompt is None:
            raise UnknownPrompt(f"No pending prompt for transaction {transaction_id}")
        return prompt

    def _finish(self, prompt: FeedbackPrompt) -> None:
        self._prompts.pop(prompt.transaction_id, None)
        self._finished[prompt.transaction_id] = prompt
        self._finished.move_to_end(prompt.transaction_id)
        while len(self._finished) > self.history_size:
            self._finished.popitem(last=False)

    @staticmethod
    def _record(prompt: FeedbackPrompt, fields: Dict[str, Any]) -> None:
        if "category" in fields:
            prompt.selected_category = fields["category"]
        if "satisfaction_rating" in fields:
            prompt.satisfaction_rating = fields["satisfaction_rating"]

    async def _apply(self, prompt: FeedbackPrompt, fields: Dict[str, Any], session: SessionProvider) -> None:
        prompt.unsaved_fields = dict(fields)
        try:
            await self._client.patch(prompt.transaction_id, fields, session)
        except DeliveryError as e:
            # stays PROMPT_PENDING; the caller decides whether to retry
            logger.warning("Feedback patch failed txn={} err={}", prompt.transaction_id, str(e))
            raise
        prompt.unsaved_fields = {}
        prompt.state = "RESOLVED"
        self._record(prompt, fields)
        self._finish(prompt)
        logger.info("Feedback resolved txn={} fields={}", prompt.transaction_id, fields)
