"""
voicecue - Speech-following teleprompter core.

Tracks a speaker's position in a script from live speech recognition
results, so a teleprompter can scroll along as the script is read.
"""

__version__ = "0.1.0"

from .capability import SpeechCapability
from .errors import ErrorKind, PermissionDeniedError, RecognitionError, VoicecueError
from .matcher import MatcherSettings, WindowMatcher
from .position_tracker import Position, PositionTracker, TrackerCallbacks
from .supervisor import SessionSupervisor
from .tokenizer import Token, TokenKind, tokenize

__all__ = [
    "SpeechCapability",
    "ErrorKind",
    "PermissionDeniedError",
    "RecognitionError",
    "VoicecueError",
    "MatcherSettings",
    "WindowMatcher",
    "Position",
    "PositionTracker",
    "TrackerCallbacks",
    "SessionSupervisor",
    "Token",
    "TokenKind",
    "tokenize",
]
