import argparse
import asyncio
import logging
import signal
import sys

from voxqueue.client import SpeechClient
from voxqueue.core.config import Config
from voxqueue.core.exceptions import ConfigurationError, VoxQueueError
from voxqueue.core.logging import setup_logging
from voxqueue.orchestrator.events import Event
from voxqueue.orchestrator.item import PlaybackOptions

async def speak_and_wait(client: SpeechClient, text: str, speaker=None, speed=None, no_wait: bool = False):
    """
    Speak text and return once the queue has drained.

    With no_wait only the first segment's start is awaited before the rest
    are queued.
    """
    options = PlaybackOptions(wait_for_start=no_wait, wait_for_end=not no_wait)
    await client.speak(text, speaker, speed, options)
    await client.queue.wait_until_idle()

def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="voxqueue", description="Speak text through a VOICEVOX engine")
    parser.add_argument("text", nargs="*", help="Text to speak")
    parser.add_argument("--speaker", type=int, default=None, help="Voice id")
    parser.add_argument("--speed", type=float, default=None, help="Speed scale")
    parser.add_argument("--output", default=None, help="Write a WAV file instead of playing")
    parser.add_argument("--list-speakers", action="store_true", help="List engine voices and exit")
    parser.add_argument("--no-wait", action="store_true",
                        help="Queue every segment without waiting on each one; exit once the queue drains")
    return parser.parse_args(argv)

async def main(argv=None) -> int:
    args = parse_args(argv)

    try:
        config = Config.load()
    except ConfigurationError as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return 2

    setup_logging(level=config.logging.level, fmt=config.logging.format)
    logger = logging.getLogger("main")
    logger.info("Starting VoxQueue...")

    async with SpeechClient(config) as client:
        health = await client.check_health()
        if not health["connected"]:
            logger.error(f"VOICEVOX engine not reachable at {health['url']}")
            return 1
        logger.info(f"Connected to VOICEVOX {health['version']}")

        if args.list_speakers:
            for speaker in await client.get_speakers():
                styles = ", ".join(f"{s['name']}={s['id']}" for s in speaker.get("styles", []))
                print(f"{speaker['name']}: {styles}")
            return 0

        text = " ".join(args.text) if args.text else sys.stdin.read()

        if args.output:
            path = await client.generate_audio_file(text, args.output, args.speaker, args.speed)
            print(path)
            return 0

        client.queue.subscribe(
            Event.ITEM_COMPLETED,
            lambda event, item: logger.info(f"Finished segment {item.id}"),
        )

        # Handle graceful shutdown
        loop = asyncio.get_running_loop()

        def stop_all():
            logger.info("Stopping...")
            asyncio.create_task(client.stop_speaker())

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, stop_all)

        try:
            await speak_and_wait(client, text, args.speaker, args.speed, no_wait=args.no_wait)
        except VoxQueueError as e:
            logger.error(f"Speech failed: {e}")
            return 1
        finally:
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)

    return 0

def run():
    try:
        sys.exit(asyncio.run(main()))
    except KeyboardInterrupt:
        pass

if __name__ == "__main__":
    run()
