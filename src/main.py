"""Command line entry point for the shorts generator."""

import argparse
import asyncio
import logging
import sys
from typing import Optional

from tqdm import tqdm

from shorts_agent import PipelineRun, PipelineState, ShortsProductionAgent, VideoSettings
from shorts_agent.models import ALLOWED_DURATIONS, ALLOWED_RESOLUTIONS
from shorts_agent.state import TOTAL_STEPS
from utils.config import load_config, setup_logging, validate_config
from utils.progress import ProgressStream

logger = logging.getLogger(__name__)

EXIT_CODES = {
    PipelineState.DONE: 0,
    PipelineState.FAILED: 1,
    PipelineState.CANCELLED: 130,
}


class ProgressBarDisplay:
    """Draws one overall progress bar from a run's progress stream."""

    def __init__(self):
        self.bar: Optional[tqdm] = None

    async def follow(self, stream: ProgressStream) -> None:
        self.bar = tqdm(
            total=100,
            desc="Ready",
            unit="%",
            leave=True,
            bar_format="{l_bar}{bar}| {n:.1f}/{total:.1f}% [{elapsed}]",
        )
        async for event in stream:
            self.bar.n = event.percent
            self.bar.set_description(f"[{event.step}/{TOTAL_STEPS}] {event.label}")
            self.bar.set_postfix_str(event.message[:50])
            self.bar.refresh()

    def close(self) -> None:
        if self.bar:
            self.bar.close()


async def list_voices(agent: ShortsProductionAgent) -> int:
    voices = await agent.list_voices()
    if not voices:
        print("No voices available (runs will use the default voice)")
        return 0
    for voice in voices:
        print(f"{voice.name}\t{voice.lang}")
    return 0


async def generate(agent: ShortsProductionAgent, settings: VideoSettings) -> PipelineRun:
    """Run the pipeline with a progress bar. Ctrl-C cancels the run."""
    run = PipelineRun(settings)
    display = ProgressBarDisplay()
    follower = asyncio.create_task(display.follow(run.subscribe()))
    task = asyncio.create_task(agent.run(settings, run))

    try:
        while not task.done():
            try:
                await asyncio.shield(task)
            except asyncio.CancelledError:
                if task.done():
                    break
                # Interrupted: stop at the current stage
                run.cancel()
                # Clear the pending cancellation so the shielded task can be awaited
                asyncio.current_task().uncancel()
        await follower
    finally:
        display.close()

    return run


async def async_main(args: argparse.Namespace) -> int:
    config = load_config()
    setup_logging(config.get("log_level", "INFO"))

    for problem in validate_config(config):
        logger.warning(f"Configuration: {problem}")

    agent = ShortsProductionAgent(config)
    try:
        if args.list_voices:
            return await list_voices(agent)

        if not args.prompt:
            logger.error("A prompt is required")
            return 2

        settings = VideoSettings(
            prompt=args.prompt,
            duration=args.duration,
            resolution=args.resolution,
            voice=args.voice,
        )
        run = await generate(agent, settings)
    finally:
        await agent.close()

    if run.state is PipelineState.DONE:
        print(f"Video ready: {run.output_path}")
    elif run.state is PipelineState.CANCELLED:
        print("Generation cancelled")
    else:
        print(f"Generation failed: {run.error}", file=sys.stderr)
    for note in run.fallbacks:
        print(f"  fallback used - {note}")
    return EXIT_CODES.get(run.state, 1)


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Generate a narrated, captioned vertical short from a prompt",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py "morning coffee routine"
  python main.py "city at night" --duration 15 --resolution 720x1280
  python main.py --list-voices
        """,
    )
    parser.add_argument("prompt", nargs="?", help="Topic of the short")
    parser.add_argument(
        "-d", "--duration",
        type=int,
        choices=ALLOWED_DURATIONS,
        default=30,
        help="Target length in seconds",
    )
    parser.add_argument(
        "-r", "--resolution",
        choices=ALLOWED_RESOLUTIONS,
        default="1080x1920",
        help="Output resolution (vertical)",
    )
    parser.add_argument("-v", "--voice", default="", help="Narration voice name")
    parser.add_argument(
        "--list-voices",
        action="store_true",
        help="List voices offered by the TTS server and exit",
    )

    args = parser.parse_args()

    try:
        sys.exit(asyncio.run(async_main(args)))
    except KeyboardInterrupt:
        logger.info("Application interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
