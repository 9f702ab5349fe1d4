"""
Main voicecue application.
Listens to the speaker and follows their position through a script file.
"""

import argparse
import asyncio
import contextlib
import logging
import signal
import sys
from pathlib import Path

from . import debug_log
from .audio import list_devices
from .capability import SpeechCapability
from .config import (
    Config,
    RecognitionConfig,
    build_matcher_settings,
    build_supervisor_settings,
    get_config_path,
    get_recognition_settings,
    load_config,
    save_config,
)
from .errors import RecognitionError, VoicecueError
from .matcher import WindowMatcher
from .position_tracker import Position, PositionTracker, TrackerCallbacks
from .providers import create_capability, download_model, get_all_available_models
from .tokenizer import Token, tokenize

logger = logging.getLogger(__name__)


class VoicecueApp:
    """
    Console teleprompter: prints the script word the speaker has reached.
    """

    def __init__(
        self,
        script_text: str,
        capability: SpeechCapability,
        config: Config
    ) -> None:
        self.tokens: list[Token] = tokenize(script_text)
        self.tracker = PositionTracker(
            self.tokens,
            capability,
            TrackerCallbacks(
                on_start=self._on_start,
                on_position_update=self._on_position_update,
                on_error=self._on_error,
                on_end=self._on_end,
            ),
            matcher=WindowMatcher(build_matcher_settings(config)),
            supervisor_settings=build_supervisor_settings(config),
        )
        self.finished = asyncio.Event()
        self._last_end: int = -1

    def _on_start(self) -> None:
        logger.info("Listening")

    def _on_position_update(self, position: Position) -> None:
        if position.end == self._last_end or not 0 <= position.end < len(self.tokens):
            return
        self._last_end = position.end
        context: str = "".join(t.text for t in self.tokens[position.end:position.end + 12])
        print(f"[{position.end:5d}] {context.strip()}")

    def _on_error(self, error: RecognitionError | VoicecueError) -> None:
        if isinstance(error, RecognitionError) and not error.fatal:
            logger.info("Recognition error: %s", error)
            return
        print(f"Error: {error}", file=sys.stderr)

    def _on_end(self) -> None:
        self.finished.set()

    async def run(self) -> None:
        """Track until the session ends or stop() is called."""
        debug_log.clear_logs()
        await self.tracker.start()
        print("Listening... press Ctrl+C to stop\n")
        await self.finished.wait()

    def stop(self) -> None:
        if self.tracker.is_running():
            self.tracker.stop()
        self.finished.set()


def main() -> None:
    """Main entry point."""
    # Configure logging - minimal console output
    logging.basicConfig(
        level=logging.WARNING,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S"
    )

    # Load config first to use as defaults
    config: Config = load_config()
    recognition: RecognitionConfig = get_recognition_settings(config)

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        description="voicecue - follow a speaker through a script using speech recognition"
    )

    parser.add_argument(
        "script",
        nargs="?",
        type=Path,
        help="Path to the script file to follow"
    )

    parser.add_argument(
        "--provider",
        default=recognition.get("provider", "vosk"),
        choices=["vosk"],
        help="Speech recognition provider (default: from config or 'vosk')"
    )

    parser.add_argument(
        "--model-id",
        default=recognition.get("model_id"),
        help="Model identifier (e.g., 'vosk-en-us-small')"
    )

    parser.add_argument(
        "--model-path",
        default=recognition.get("model_path"),
        help="Path to custom model directory (optional)"
    )

    parser.add_argument(
        "--locale",
        default=recognition.get("locale", "en-US"),
        help="Recognition language (default: from config or en-US)"
    )

    parser.add_argument(
        "--device", "-d",
        type=int,
        default=recognition.get("audio_device"),
        help="Audio input device index"
    )

    parser.add_argument(
        "--chunk-ms",
        type=int,
        default=recognition.get("chunk_ms", 100),
        help="Audio chunk size in milliseconds (default: from config or 100)"
    )

    parser.add_argument(
        "--list-devices",
        action="store_true",
        help="List available audio input devices and exit"
    )

    parser.add_argument(
        "--list-models",
        action="store_true",
        help="List all available recognition models and exit"
    )

    parser.add_argument(
        "--download-model",
        action="store_true",
        help="Download the specified model and exit"
    )

    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Save current CLI options to config file and exit"
    )

    parser.add_argument(
        "--debug-log",
        action="store_true",
        help="Enable debug logging to ./logs/"
    )

    args: argparse.Namespace = parser.parse_args()

    # Handle special commands
    if args.list_devices:
        list_devices()
        return

    if args.list_models:
        print("\nAvailable recognition models:")
        print("-" * 80)
        for model in sorted(get_all_available_models(), key=lambda m: (m.provider, m.name)):
            print(f"  {model.id}")
            print(f"    Name: {model.name} ({model.locale})")
            print(f"    Size: {model.size_mb}MB")
            print()
        return

    if args.download_model:
        print(f"Downloading model: {args.model_id}")
        path: str = download_model(args.provider, args.model_id)
        print(f"Model installed to {path}")
        return

    if args.save_config:
        config["recognition"].update({
            "provider": args.provider,
            "model_id": args.model_id,
            "model_path": args.model_path,
            "locale": args.locale,
            "audio_device": args.device,
            "chunk_ms": args.chunk_ms,
        })
        if save_config(config):
            print(f"Configuration saved to {get_config_path()}")
        return

    if args.script is None:
        parser.error("a script file is required")

    try:
        script_text: str = args.script.read_text(encoding="utf-8")
    except OSError as e:
        print(f"Error loading script: {e}", file=sys.stderr)
        sys.exit(1)

    if args.debug_log:
        debug_log.enable()
        print("Debug logging enabled (logs will be saved to ./logs/)")

    config["recognition"]["locale"] = args.locale
    capability: SpeechCapability = create_capability(
        args.provider,
        args.model_id,
        model_path=args.model_path,
        device=args.device,
        chunk_ms=args.chunk_ms,
    )
    app = VoicecueApp(script_text, capability, config)

    loop: asyncio.AbstractEventLoop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def shutdown(sig: int, frame: object) -> None:
        """Handle shutdown signals (SIGINT, SIGTERM) gracefully."""
        print("\nReceived shutdown signal...")
        loop.call_soon_threadsafe(app.stop)

    signal.signal(signal.SIGINT, shutdown)
    signal.signal(signal.SIGTERM, shutdown)

    try:
        loop.run_until_complete(app.run())
    except VoicecueError:
        # Already reported through the error callback
        sys.exit(1)
    finally:
        with contextlib.suppress(Exception):
            app.stop()
        pending: set[asyncio.Task[object]] = asyncio.all_tasks(loop)
        for task in pending:
            task.cancel()
        if pending:
            loop.run_until_complete(asyncio.gather(
                *pending, return_exceptions=True))
        loop.close()


if __name__ == "__main__":
    main()
