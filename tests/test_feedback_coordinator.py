import asyncio
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from smsledger.core.feedback_coordinator import FeedbackCoordinator
from smsledger.errors import DeliveryFailed, InvalidCategory, UnknownPrompt
from smsledger.models.feedback import CategoryAction, OpenAppAction, SatisfactionAction, parse_action
from smsledger.models.transaction import CATEGORIES, Transaction
from smsledger.utils.notifications import LoggingNotifier, build_category_notification


def _txn(tid, **kw) -> Transaction:
    data = dict(
        id=tid,
        name="Swiggy",
        amount=Decimal("250"),
        direction="debit",
        occurred_at=datetime(2024, 3, 12, 9, 30, tzinfo=timezone.utc),
        confidence=0.6,
    )
    data.update(kw)
    return Transaction(**data)


@pytest.fixture
def notifier():
    return LoggingNotifier()


@pytest.fixture
def opened():
    return []


@pytest.fixture
def coordinator(client, notifier, opened):
    return FeedbackCoordinator(client, notifier=notifier, on_open_app=opened.append, threshold=0.6)


def test_parse_action():
    assert parse_action("SATISFACTION_YES") == SatisfactionAction(rating=5)
    assert parse_action("SATISFACTION_MAYBE") == SatisfactionAction(rating=3)
    assert parse_action("SATISFACTION_NO") == SatisfactionAction(rating=1)
    assert parse_action("CAT_ENTERTAINMENT") == CategoryAction(category="Entertainment")
    assert parse_action(None) == OpenAppAction()
    assert parse_action("expo.modules.notifications.actions.DEFAULT") == OpenAppAction(
        action_id="expo.modules.notifications.actions.DEFAULT"
    )


def test_prompt_opened_once_for_double_trigger(coordinator, notifier, ledger):
    tid = ledger.seed()
    first = coordinator.maybe_prompt(_txn(tid))
    second = coordinator.maybe_prompt(_txn(tid))
    assert first is not None
    assert first.state == "PROMPT_PENDING"
    assert [o.value for o in first.candidate_categories] == CATEGORIES
    assert second is None
    assert len(coordinator.pending()) == 1
    assert len(notifier.sent) == 1
    assert notifier.sent[0]["data"]["transactionId"] == tid


def test_confident_categorized_record_needs_no_prompt(coordinator, notifier):
    assert coordinator.maybe_prompt(_txn("txn-9", category="Food", confidence=0.9)) is None
    assert coordinator.state("txn-9") == "NO_PROMPT_NEEDED"
    assert list(notifier.sent) == []


def test_low_confidence_prompts_even_with_category(coordinator):
    assert coordinator.maybe_prompt(_txn("txn-9", category="Food", confidence=0.3)) is not None


def test_manual_record_with_category_needs_no_prompt(coordinator):
    assert coordinator.maybe_prompt(_txn("txn-9", category="Bills", confidence=None)) is None


def test_prompt_requires_ledger_id(coordinator):
    with pytest.raises(ValueError):
        coordinator.maybe_prompt(_txn(None))


def test_select_category_resolves(coordinator, ledger, session):
    tid = ledger.seed()
    coordinator.maybe_prompt(_txn(tid))
    prompt = asyncio.run(coordinator.select_category(tid, "Food", session))
    assert prompt.state == "RESOLVED"
    assert prompt.outcome == "selected(Food)"
    assert coordinator.state(tid) == "RESOLVED"
    assert ledger.transactions[tid]["category"] == "Food"
    assert coordinator.pending() == []


def test_select_invalid_category(coordinator, ledger, session):
    tid = ledger.seed()
    coordinator.maybe_prompt(_txn(tid))
    with pytest.raises(InvalidCategory):
        asyncio.run(coordinator.select_category(tid, "Groceries", session))
    assert coordinator.state(tid) == "PROMPT_PENDING"
    assert ledger.requests == []


def test_select_without_prompt(coordinator, session):
    with pytest.raises(UnknownPrompt):
        asyncio.run(coordinator.select_category("txn-404", "Food", session))


@pytest.mark.parametrize("action_id,rating", [("SATISFACTION_YES", 5), ("SATISFACTION_MAYBE", 3), ("SATISFACTION_NO", 1)])
def test_satisfaction_actions(coordinator, ledger, session, action_id, rating):
    tid = ledger.seed()
    coordinator.maybe_prompt(_txn(tid))
    action = asyncio.run(coordinator.handle_action(action_id, tid, session))
    assert action == SatisfactionAction(rating=rating)
    assert ledger.transactions[tid]["satisfaction_rating"] == rating
    assert coordinator.get(tid).satisfaction_rating == rating
    assert coordinator.state(tid) == "RESOLVED"


def test_category_action(coordinator, ledger, session):
    tid = ledger.seed()
    coordinator.maybe_prompt(_txn(tid))
    asyncio.run(coordinator.handle_action("CAT_TRAVEL", tid, session))
    assert ledger.transactions[tid]["category"] == "Travel"
    assert coordinator.get(tid).outcome == "selected(Travel)"


def test_open_app_action_does_not_resolve(coordinator, ledger, session, opened):
    tid = ledger.seed()
    coordinator.maybe_prompt(_txn(tid))
    action = asyncio.run(coordinator.handle_action(None, tid, session))
    assert isinstance(action, OpenAppAction)
    assert opened == [tid]
    assert coordinator.state(tid) == "PROMPT_PENDING"
    assert ledger.requests == []


def test_action_without_prompt_is_saved_without_opening_one(coordinator, ledger, session):
    tid = ledger.seed()
    asyncio.run(coordinator.handle_action("CAT_BILLS", tid, session))
    assert ledger.transactions[tid]["category"] == "Bills"
    assert coordinator.state(tid) == "NO_PROMPT_NEEDED"
    assert coordinator.pending() == []


def test_skip(coordinator, ledger):
    tid = ledger.seed()
    coordinator.maybe_prompt(_txn(tid))
    prompt = coordinator.skip(tid)
    assert prompt.state == "SKIPPED"
    assert prompt.outcome == "skipped"
    assert ledger.requests == []
    with pytest.raises(UnknownPrompt):
        coordinator.skip(tid)
    # dismissal is final
    assert coordinator.maybe_prompt(_txn(tid)) is None
    assert coordinator.state(tid) == "SKIPPED"


def test_failed_patch_keeps_prompt_pending_and_can_retry(coordinator, ledger, session):
    tid = ledger.seed()
    coordinator.maybe_prompt(_txn(tid))
    ledger.fail_with = 503
    with pytest.raises(DeliveryFailed):
        asyncio.run(coordinator.select_category(tid, "Health", session))
    prompt = coordinator.get(tid)
    assert prompt.state == "PROMPT_PENDING"
    assert prompt.unsaved_fields == {"category": "Health"}

    ledger.fail_with = None
    asyncio.run(coordinator.retry(tid, session))
    assert prompt.state == "RESOLVED"
    assert prompt.unsaved_fields == {}
    assert ledger.transactions[tid]["category"] == "Health"


def test_retry_without_unsaved_answer(coordinator, ledger, session):
    tid = ledger.seed()
    coordinator.maybe_prompt(_txn(tid))
    with pytest.raises(UnknownPrompt):
        asyncio.run(coordinator.retry(tid, session))


def test_notifier_failure_does_not_block_prompt(client):
    def broken(_notification):
        raise RuntimeError("push service down")

    coordinator = FeedbackCoordinator(client, notifier=broken, threshold=0.6)
    assert coordinator.maybe_prompt(_txn("txn-1")) is not None
    assert coordinator.state("txn-1") == "PROMPT_PENDING"


def test_failed_late_action_keeps_resolved_prompt(coordinator, ledger, session):
    tid = ledger.seed()
    coordinator.maybe_prompt(_txn(tid))
    asyncio.run(coordinator.select_category(tid, "Food", session))

    ledger.fail_with = 503
    with pytest.raises(DeliveryFailed):
        asyncio.run(coordinator.handle_action("SATISFACTION_YES", tid, session))
    prompt = coordinator.get(tid)
    assert prompt.state == "RESOLVED"
    assert prompt.outcome == "selected(Food)"
    assert prompt.satisfaction_rating is None
    assert coordinator.pending() == []


def test_late_action_updates_resolved_prompt(coordinator, ledger, session):
    tid = ledger.seed()
    coordinator.maybe_prompt(_txn(tid))
    asyncio.run(coordinator.select_category(tid, "Food", session))
    asyncio.run(coordinator.handle_action("SATISFACTION_MAYBE", tid, session))
    prompt = coordinator.get(tid)
    assert prompt.state == "RESOLVED"
    assert prompt.selected_category == "Food"
    assert prompt.satisfaction_rating == 3
    assert ledger.transactions[tid]["satisfaction_rating"] == 3


def test_action_after_skip_is_ignored(coordinator, ledger, session):
    tid = ledger.seed()
    coordinator.maybe_prompt(_txn(tid))
    coordinator.skip(tid)
    action = asyncio.run(coordinator.handle_action("CAT_BILLS", tid, session))
    assert action == CategoryAction(category="Bills")
    assert coordinator.state(tid) == "SKIPPED"
    assert coordinator.get(tid).selected_category is None
    assert ledger.transactions[tid]["category"] == "Other"
    assert ledger.requests == []


def test_failed_action_without_prompt_stores_nothing(coordinator, ledger, session):
    ledger.fail_with = 500
    with pytest.raises(DeliveryFailed):
        asyncio.run(coordinator.handle_action("SATISFACTION_NO", "txn-1", session))
    assert coordinator.get("txn-1") is None
    assert coordinator.pending() == []


def test_finished_prompts_are_bounded(client):
    coordinator = FeedbackCoordinator(client, threshold=0.6, history_size=10)
    for i in range(100):
        tid = f"txn-{i}"
        coordinator.maybe_prompt(_txn(tid))
        coordinator.skip(tid)
    assert coordinator.pending() == []
    assert len(coordinator._prompts) == 0
    assert len(coordinator._finished) == 10
    assert coordinator.state("txn-99") == "SKIPPED"
    assert coordinator.state("txn-0") == "NO_PROMPT_NEEDED"


def test_resolved_prompt_leaves_pending_set(coordinator, ledger, session):
    tid = ledger.seed()
    coordinator.maybe_prompt(_txn(tid))
    asyncio.run(coordinator.handle_action("CAT_FOOD", tid, session))
    assert coordinator.pending() == []
    assert tid not in coordinator._prompts
    # a fresh trigger after resolution may ask again
    assert coordinator.maybe_prompt(_txn(tid)) is not None


def test_logging_notifier_keeps_recent_sends():
    notifier = LoggingNotifier(keep=3)
    for i in range(10):
        notifier(build_category_notification(_txn(f"txn-{i}")))
    assert len(notifier.sent) == 3
    assert notifier.sent[0]["data"]["transactionId"] == "txn-7"
