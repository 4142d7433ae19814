import pytest

from voxqueue.core.exceptions import InvalidTransition
from voxqueue.orchestrator.fsm import ItemStateMachine, QueueStateMachine
from voxqueue.orchestrator.state import ItemStatus, QueueState

def test_item_happy_path():
    machine = ItemStateMachine("item-1")
    assert machine.state == ItemStatus.PENDING

    for status in (ItemStatus.GENERATING, ItemStatus.READY, ItemStatus.PLAYING, ItemStatus.COMPLETED):
        machine.transition(status)

    assert machine.state == ItemStatus.COMPLETED
    assert machine.is_terminal
    assert machine.available_transitions() == []

@pytest.mark.parametrize("start", [ItemStatus.GENERATING, ItemStatus.READY, ItemStatus.PLAYING])
def test_item_error_reachable(start):
    machine = ItemStateMachine("item-1", initial=start)
    assert machine.can_transition(ItemStatus.ERROR)
    machine.transition(ItemStatus.ERROR)
    assert machine.is_terminal

def test_item_illegal_transition_leaves_state_unchanged():
    machine = ItemStateMachine("item-1")
    calls = []
    machine.add_callback(lambda *args: calls.append(args))

    with pytest.raises(InvalidTransition) as exc_info:
        machine.transition(ItemStatus.PLAYING)

    assert machine.state == ItemStatus.PENDING
    assert calls == []
    assert "PENDING -> PLAYING" in str(exc_info.value)
    assert not machine.can_transition(ItemStatus.ERROR)

def test_item_cannot_go_backwards():
    machine = ItemStateMachine("item-1", initial=ItemStatus.READY)
    with pytest.raises(InvalidTransition):
        machine.transition(ItemStatus.GENERATING)

def test_item_callbacks_run_in_order_before_return():
    machine = ItemStateMachine("item-1")
    calls = []
    machine.add_callback(lambda item_id, old, new: calls.append(("first", item_id, old, new)))
    machine.add_callback(lambda item_id, old, new: calls.append(("second", item_id, old, new)))

    machine.transition(ItemStatus.GENERATING)

    assert calls == [
        ("first", "item-1", ItemStatus.PENDING, ItemStatus.GENERATING),
        ("second", "item-1", ItemStatus.PENDING, ItemStatus.GENERATING),
    ]

def test_queue_transitions():
    machine = QueueStateMachine()
    seen = []
    machine.add_callback(lambda old, new: seen.append((old, new)))

    machine.transition(QueueState.ACTIVE)
    machine.transition(QueueState.DRAINING)
    assert not machine.accepts_playback
    machine.transition(QueueState.ACTIVE)
    machine.transition(QueueState.DRAINING)
    machine.transition(QueueState.IDLE)

    assert machine.accepts_playback
    assert seen[0] == (QueueState.IDLE, QueueState.ACTIVE)
    assert seen[-1] == (QueueState.DRAINING, QueueState.IDLE)

def test_queue_same_state_is_noop():
    machine = QueueStateMachine()
    seen = []
    machine.add_callback(lambda old, new: seen.append(new))

    machine.transition(QueueState.IDLE)
    assert seen == []

def test_queue_illegal_transition():
    machine = QueueStateMachine()
    with pytest.raises(InvalidTransition):
        machine.transition(QueueState.DRAINING)
    assert machine.state == QueueState.IDLE
