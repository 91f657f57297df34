import uuid

import pytest

from debate_arena.services.subscriptions import SubscriptionHub


def test_publish_reaches_only_matching_listeners() -> None:
    hub = SubscriptionHub()
    debate_id = uuid.uuid4()
    documents, collections, others = [], [], []

    hub.subscribe(debate_id, documents.append)
    hub.subscribe(debate_id, collections.append, collection="arguments")
    hub.subscribe(uuid.uuid4(), others.append)

    hub.publish(debate_id, "state-1")
    hub.publish(debate_id, ["arg"], collection="arguments")

    assert documents == ["state-1"]
    assert collections == [["arg"]]
    assert others == []


def test_dispose_stops_delivery_and_is_idempotent() -> None:
    hub = SubscriptionHub()
    debate_id = uuid.uuid4()
    received = []

    subscription = hub.subscribe(debate_id, received.append)
    assert hub.listener_count(debate_id) == 1
    subscription.dispose()
    subscription.dispose()

    hub.publish(debate_id, "ignored")
    assert received == []
    assert hub.listener_count(debate_id) == 0
    assert subscription.active is False


def test_subscription_as_context_manager() -> None:
    hub = SubscriptionHub()
    debate_id = uuid.uuid4()
    with hub.subscribe(debate_id, lambda value: None):
        assert hub.listener_count(debate_id) == 1
    assert hub.listener_count(debate_id) == 0


def test_failing_listener_does_not_block_others() -> None:
    hub = SubscriptionHub()
    debate_id = uuid.uuid4()
    received = []

    def broken(value):
        raise RuntimeError("boom")

    hub.subscribe(debate_id, broken)
    hub.subscribe(debate_id, received.append)
    hub.publish(debate_id, "state")
    assert received == ["state"]


def test_store_publishes_committed_changes(service, ready_debate, hub) -> None:
    state = ready_debate()
    states, argument_lists = [], []

    service.store.subscribe(state.id, states.append)
    service.store.subscribe_collection(state.id, "arguments", argument_lists.append)

    service.start(state.id, "alice")
    assert states[-1].status == "active"
    assert argument_lists == []

    service.submit_argument(state.id, "alice", "Opening.")
    assert states[-1].current_turn == "bob"
    # Once when the argument is committed, once when its score lands.
    assert len(argument_lists) == 2
    assert argument_lists[0][0].score is None
    assert argument_lists[-1][0].score == 7.0


def test_unknown_collection_is_rejected(service, ready_debate) -> None:
    state = ready_debate()
    with pytest.raises(ValueError):
        service.store.subscribe_collection(state.id, "comments", lambda value: None)
