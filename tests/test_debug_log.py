"""Tests for the debug_log module."""

from unittest import mock

import pytest

from voicecue import debug_log
from voicecue.errors import classify_error
from voicecue.position_tracker import Position


class TestDebugLogEnableDisable:
    """Test the enable/disable functionality of debug logging."""

    def setup_method(self):
        """Reset debug log state before each test."""
        debug_log.disable()

    def test_disabled_by_default(self):
        """Debug logging should be disabled by default."""
        assert not debug_log.is_enabled()

    def test_enable(self):
        """enable() should turn on debug logging."""
        debug_log.enable()
        assert debug_log.is_enabled()
        debug_log.disable()

    def test_disable(self):
        """disable() should turn off debug logging."""
        debug_log.enable()
        debug_log.disable()
        assert not debug_log.is_enabled()

    def test_clear_logs_no_op_when_disabled(self):
        """clear_logs() should do nothing when logging is disabled."""
        with mock.patch.object(debug_log, '_ensure_log_dir') as mock_ensure:
            debug_log.clear_logs()
            mock_ensure.assert_not_called()

    def test_log_transcript_no_op_when_disabled(self):
        """log_transcript() should do nothing when logging is disabled."""
        with mock.patch.object(debug_log, '_ensure_log_dir') as mock_ensure:
            debug_log.log_transcript("hello", True)
            mock_ensure.assert_not_called()

    def test_log_position_update_no_op_when_disabled(self):
        """log_position_update() should do nothing when logging is disabled."""
        with mock.patch.object(debug_log, '_ensure_log_dir') as mock_ensure:
            debug_log.log_position_update(Position(), Position(end=2), ["word"])
            mock_ensure.assert_not_called()

    def test_log_error_no_op_when_disabled(self):
        """log_error() should do nothing when logging is disabled."""
        with mock.patch.object(debug_log, '_ensure_log_dir') as mock_ensure:
            debug_log.log_error(classify_error("network"))
            mock_ensure.assert_not_called()


class TestDebugLogWriting:
    """Test what gets written when logging is enabled."""

    @pytest.fixture(autouse=True)
    def log_dir(self, tmp_path):
        log_file = tmp_path / "tracking.log"
        with mock.patch.object(debug_log, 'LOG_DIR', tmp_path), \
                mock.patch.object(debug_log, 'TRACKING_LOG', log_file):
            debug_log.enable()
            yield log_file
            debug_log.disable()

    def test_clear_logs_starts_new_session(self, log_dir):
        log_dir.write_text("old content\n", encoding="utf-8")
        debug_log.clear_logs()
        content = log_dir.read_text(encoding="utf-8")
        assert "old content" not in content
        assert "New session started" in content

    def test_log_transcript(self, log_dir):
        debug_log.log_transcript("the quick brown", False)
        content = log_dir.read_text(encoding="utf-8")
        assert "interim transcript: \"the quick brown\"" in content

    def test_log_position_update(self, log_dir):
        debug_log.log_position_update(
            Position(), Position(start=7, search=7, end=7, bounds=35), ["the", "quick"])
        content = log_dir.read_text(encoding="utf-8")
        assert "start=-1->7" in content
        assert "bounds=-1->35" in content
        assert "['the', 'quick']" in content

    def test_log_position_update_without_words(self, log_dir):
        debug_log.log_position_update(Position(end=5), Position(end=5, bounds=9), [])
        lines = log_dir.read_text(encoding="utf-8").splitlines()
        assert len(lines) == 1

    def test_log_error(self, log_dir):
        debug_log.log_error(classify_error("audio-capture"))
        content = log_dir.read_text(encoding="utf-8")
        assert "FATAL audio_capture (audio-capture)" in content
