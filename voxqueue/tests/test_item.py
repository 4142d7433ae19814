import pytest

from voxqueue.core.exceptions import InvalidTransition, SynthesisError
from voxqueue.orchestrator.item import QueueItem
from voxqueue.orchestrator.state import ItemStatus

def test_mark_ready_attaches_audio():
    item = QueueItem(speaker=1, text="hi")
    item.machine.transition(ItemStatus.GENERATING)

    item.mark_ready(b"RIFF")

    assert item.status == ItemStatus.READY
    assert item.audio_data == b"RIFF"

def test_mark_ready_rejected_from_pending_leaves_audio_unset():
    item = QueueItem(speaker=1, text="hi")

    with pytest.raises(InvalidTransition):
        item.mark_ready(b"RIFF")

    assert item.status == ItemStatus.PENDING
    assert item.audio_data is None

def test_mark_ready_rejected_keeps_existing_audio():
    item = QueueItem(speaker=1, text="hi")
    item.machine.transition(ItemStatus.GENERATING)
    item.mark_ready(b"RIFFfirst")

    with pytest.raises(InvalidTransition):
        item.mark_ready(b"RIFFsecond")

    assert item.audio_data == b"RIFFfirst"

def test_mark_ready_after_failure_keeps_audio_cleared():
    item = QueueItem(speaker=1, text="hi")
    item.machine.transition(ItemStatus.GENERATING)
    item.fail(SynthesisError("engine down"))

    with pytest.raises(InvalidTransition):
        item.mark_ready(b"RIFF")

    assert item.status == ItemStatus.ERROR
    assert item.audio_data is None
