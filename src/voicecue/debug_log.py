"""
Debug logging of transcripts and position changes.

Writes tracking.log in the logs directory: every transcript fragment
received, every position update with the words it moved over, and every
recognition error. Useful for lining up what was heard with where the
tracker went.

Logging is disabled by default. Call enable() to turn it on.
"""

from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .errors import RecognitionError
    from .position_tracker import Position

# Log files location (in the current working directory)
LOG_DIR: Path = Path.cwd() / "logs"
TRACKING_LOG: Path = LOG_DIR / "tracking.log"

# Global flag to control whether debug logging is enabled
_ENABLED: bool = False  # pylint: disable=invalid-name


def enable() -> None:
    """Enable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = True


def disable() -> None:
    """Disable debug logging."""
    global _ENABLED  # pylint: disable=global-statement
    _ENABLED = False


def is_enabled() -> bool:
    """Check if debug logging is enabled."""
    return _ENABLED


def _ensure_log_dir() -> None:
    """Create log directory if it doesn't exist."""
    LOG_DIR.mkdir(exist_ok=True)


def _timestamp() -> str:
    """Get current timestamp."""
    return datetime.now().strftime("%H:%M:%S.%f")[:-3]


def _write(line: str) -> None:
    _ensure_log_dir()
    with open(TRACKING_LOG, 'a', encoding='utf-8') as f:
        f.write(f"[{_timestamp()}] {line}\n")


def clear_logs() -> None:
    """Clear the log file for a fresh session."""
    if not _ENABLED:
        return
    _ensure_log_dir()
    with open(TRACKING_LOG, 'w', encoding='utf-8') as f:
        f.write(
            f"=== New session started at {datetime.now().isoformat()} ===\n\n")


def log_transcript(transcript: str, is_final: bool) -> None:
    """Log a transcript fragment as received from the recognizer."""
    if not _ENABLED:
        return
    kind: str = "final" if is_final else "interim"
    _write(f"{kind:7} transcript: \"{transcript[-60:]}\"")


def log_position_update(old: 'Position', new: 'Position', words: list[str]) -> None:
    """
    Log a position change.

    Args:
        old: Position before the update
        new: Position after the update
        words: Script words between the old and new end
    """
    if not _ENABLED:
        return
    _write(
        f"POSITION: start={old.start}->{new.start} search={old.search}->{new.search} "
        f"end={old.end}->{new.end} bounds={old.bounds}->{new.bounds}")
    if words:
        _write(f"          words: {words}")


def log_error(error: 'RecognitionError') -> None:
    """Log a recognition error."""
    if not _ENABLED:
        return
    severity: str = "FATAL" if error.fatal else "error"
    _write(f"{severity} {error.kind.value} ({error.code}): {error.message}")
