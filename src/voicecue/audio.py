# Copyright © 2025 Ed Nutting
# SPDX-License-Identifier: MIT
# See LICENSE file for details

"""
Audio capture module using sounddevice for low-latency microphone input.
Captures audio in small chunks for a streaming recognizer to consume.
"""

import logging
import queue
from collections.abc import Sequence
from typing import Any

import numpy as np
import numpy.typing as npt
import sounddevice as sd

from .errors import CapabilityError

logger = logging.getLogger(__name__)


class AudioCapture:
    """Captures audio from the microphone in small chunks for streaming recognition."""

    sample_rate: int
    chunk_duration_ms: int
    chunk_size: int
    device: int | None
    audio_queue: queue.Queue[bytes]
    stream: sd.RawInputStream | None
    running: bool

    def __init__(
        self,
        sample_rate: int = 16000,
        chunk_duration_ms: int = 100,
        device: int | None = None
    ) -> None:
        """
        Initialize audio capture.

        Args:
            sample_rate: Sample rate in Hz (16000 is optimal for Vosk)
            chunk_duration_ms: Duration of each audio chunk in milliseconds
            device: Audio device index, or None for default
        """
        self.sample_rate = sample_rate
        self.chunk_duration_ms = chunk_duration_ms
        self.chunk_size = int(sample_rate * chunk_duration_ms / 1000)
        self.device = device

        self.audio_queue = queue.Queue()
        self.stream = None
        self.running = False

    def _audio_callback(
        self,
        indata: npt.NDArray[np.int16],
        frames: int,
        time: Any,
        status: sd.CallbackFlags
    ) -> None:
        """Called for each audio chunk from the microphone."""
        if status:
            logger.warning("Audio status: %s", status)
        self.audio_queue.put(bytes(indata))

    def start(self) -> None:
        """
        Start capturing audio from the microphone.

        Raises:
            CapabilityError: If the input stream could not be opened
        """
        if self.running:
            return

        try:
            self.stream = sd.RawInputStream(
                samplerate=self.sample_rate,
                blocksize=self.chunk_size,
                device=self.device,
                dtype=np.int16,
                channels=1,
                callback=self._audio_callback
            )
            self.stream.start()
        except sd.PortAudioError as e:
            self.stream = None
            raise CapabilityError(f"Could not open audio input: {e}") from e

        self.running = True
        logger.debug("Audio capture started (device=%s)", self.device)

    def stop(self) -> None:
        """Stop capturing audio."""
        self.running = False
        if self.stream:
            self.stream.stop()
            self.stream.close()
            self.stream = None

    def get_chunk(self, timeout: float = 0.5) -> bytes | None:
        """
        Get the next audio chunk.

        Args:
            timeout: Maximum time to wait for a chunk

        Returns:
            Audio data as bytes, or None if timeout
        """
        try:
            return self.audio_queue.get(timeout=timeout)
        except queue.Empty:
            return None


def _input_devices() -> list[tuple[int, dict[str, Any]]]:
    devices: Sequence[Any] = sd.query_devices()
    inputs: list[tuple[int, dict[str, Any]]] = []
    for i, device in enumerate(devices):
        dev: dict[str, Any] = dict(device)
        if dev.get('max_input_channels', 0) > 0:
            inputs.append((i, dev))
    return inputs


def has_input_device(device: int | None = None) -> bool:
    """Check whether a microphone (or the given device) is available."""
    try:
        inputs = _input_devices()
    except sd.PortAudioError as e:
        logger.warning("Could not query audio devices: %s", e)
        return False

    if device is None:
        return bool(inputs)
    return any(i == device for i, _ in inputs)


def list_devices() -> list[tuple[int, dict[str, Any]]]:
    """List available audio input devices."""
    print("Available audio input devices:")
    inputs = _input_devices()
    for i, dev in inputs:
        print(f"  [{i}] {dev.get('name', 'Unknown')} "
              f"(inputs: {dev.get('max_input_channels', 0)})")
    return inputs
