from unittest.mock import AsyncMock, MagicMock

import pytest

from voxqueue.client import SpeechClient, SpeechSegment, split_text
from voxqueue.core.config import Config
from voxqueue.core.exceptions import EmptyInputError
from voxqueue.orchestrator.item import EnqueueResult, PlaybackOptions, QueueItem

def test_split_text_keeps_short_text_whole():
    assert split_text("こんにちは。元気ですか？") == ["こんにちは。元気ですか？"]

def test_split_text_breaks_on_sentences():
    assert split_text("Hello there. How are you? Fine!", max_length=14) == [
        "Hello there.", "How are you?", "Fine!",
    ]

def test_split_text_cuts_long_sentences():
    assert split_text("a" * 20, max_length=8) == ["a" * 8, "a" * 8, "a" * 4]

def test_split_text_blank():
    assert split_text("  \n ") == []

def fake_queue():
    queue = MagicMock()
    queue.enqueue = AsyncMock(
        side_effect=lambda text, speaker=None, speed_scale=None, options=None:
            EnqueueResult(item=QueueItem(speaker=speaker, text=text, options=options))
    )
    return queue

@pytest.mark.asyncio
async def test_only_first_segment_may_interrupt():
    queue = fake_queue()
    client = SpeechClient(Config(), synthesizer=MagicMock(), queue=queue, max_segment_length=12)

    items = await client.speak("First one. Second one.", speaker=3, options=PlaybackOptions(immediate=True))

    assert [item.text for item in items] == ["First one.", "Second one."]
    first, second = queue.enqueue.call_args_list
    assert first.kwargs["options"].immediate is True
    assert second.kwargs["options"].immediate is False
    assert all(call.kwargs["speaker"] == 3 for call in queue.enqueue.call_args_list)

@pytest.mark.asyncio
async def test_segments_with_own_speakers():
    queue = fake_queue()
    client = SpeechClient(Config(), synthesizer=MagicMock(), queue=queue)

    await client.speak([SpeechSegment("はい", speaker=8), SpeechSegment("いいえ"), SpeechSegment("  ")], speaker=2)

    speakers = [call.kwargs["speaker"] for call in queue.enqueue.call_args_list]
    assert speakers == [8, 2]

@pytest.mark.asyncio
async def test_empty_speech_raises():
    client = SpeechClient(Config(), synthesizer=MagicMock(), queue=fake_queue())
    with pytest.raises(EmptyInputError):
        await client.speak("   ")

@pytest.mark.asyncio
async def test_speak_waits_for_all_segments(make_manager, synth, player):
    manager = make_manager()
    client = SpeechClient(manager.config, synthesizer=synth, queue=manager, max_segment_length=6)

    await client.speak("One. Two. Three.", options=PlaybackOptions(wait_for_end=True))

    assert player.played == [b"RIFFOne.", b"RIFFTwo.", b"RIFFThree."]
    await client.close()

@pytest.mark.asyncio
async def test_generate_audio_file(make_manager, synth, tmp_path):
    manager = make_manager()
    client = SpeechClient(manager.config, synthesizer=synth, queue=manager)

    path = await client.generate_audio_file("保存", str(tmp_path / "out.wav"), speaker=5)

    with open(path, "rb") as f:
        assert f.read() == "RIFF保存".encode()
    assert ("synthesize", "保存") in synth.calls
    assert manager.get_queue_length() == 0

@pytest.mark.asyncio
async def test_stop_speaker_clears_queue():
    queue = fake_queue()
    queue.clear_queue = AsyncMock()
    client = SpeechClient(Config(), synthesizer=MagicMock(), queue=queue)

    await client.stop_speaker()
    queue.clear_queue.assert_awaited_once()
