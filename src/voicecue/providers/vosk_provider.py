"""
Vosk speech capability.

Runs a Vosk recognizer over microphone audio on a worker thread and reports
recognition events back on the asyncio event loop.
"""

import asyncio
import json
import logging
import os
import tempfile
import threading
import urllib.request
import zipfile
from collections.abc import Callable
from pathlib import Path
from typing import Any

from vosk import KaldiRecognizer, Model, SetLogLevel

from ..audio import AudioCapture, has_input_device
from ..capability import ModelInfo, SpeechCapability
from ..errors import AUDIO_CAPTURE, CapabilityError

logger = logging.getLogger(__name__)

# Suppress Vosk's verbose logging
SetLogLevel(-1)

MODEL_CACHE_DIR: Path = Path.home() / ".cache" / "voicecue" / "models"


class VoskCapability(SpeechCapability):
    """Continuous speech recognition with a local Vosk model."""

    # Available Vosk models with metadata
    MODELS: dict[str, dict[str, Any]] = {
        "vosk-en-us-small": {
            "dir": "vosk-model-small-en-us-0.15",
            "name": "English US - Small",
            "locale": "en-US",
            "size_mb": 40,
            "url": "https://alphacephei.com/vosk/models/vosk-model-small-en-us-0.15.zip",
        },
        "vosk-en-us-medium": {
            "dir": "vosk-model-en-us-0.22",
            "name": "English US - Medium",
            "locale": "en-US",
            "size_mb": 1800,
            "url": "https://alphacephei.com/vosk/models/vosk-model-en-us-0.22.zip",
        },
        "vosk-en-gb-small": {
            "dir": "vosk-model-small-en-gb-0.15",
            "name": "English GB - Small",
            "locale": "en-GB",
            "size_mb": 40,
            "url": "https://alphacephei.com/vosk/models/vosk-model-small-en-gb-0.15.zip",
        },
        "vosk-ru-small": {
            "dir": "vosk-model-small-ru-0.22",
            "name": "Russian - Small",
            "locale": "ru-RU",
            "size_mb": 45,
            "url": "https://alphacephei.com/vosk/models/vosk-model-small-ru-0.22.zip",
        },
    }

    model_id: str
    model_path: str
    sample_rate: int
    device: int | None
    chunk_ms: int

    def __init__(
        self,
        model_id: str = "vosk-en-us-small",
        model_path: str | None = None,
        sample_rate: int = 16000,
        device: int | None = None,
        chunk_ms: int = 100
    ) -> None:
        """
        Initialize the Vosk capability. The model is loaded on first start.

        Args:
            model_id: Model identifier (e.g., "vosk-en-us-small")
            model_path: Custom model directory, overriding model_id
            sample_rate: Audio sample rate in Hz
            device: Audio input device index, or None for default
            chunk_ms: Audio chunk size in milliseconds
        """
        self.model_id = model_id
        self.model_path = model_path or self.get_model_path(model_id)
        self.sample_rate = sample_rate
        self.device = device
        self.chunk_ms = chunk_ms

        self._model: Model | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._worker: threading.Thread | None = None
        self._stop_flag = threading.Event()

    async def request_permission(self) -> bool:
        # Desktop platforms have no permission prompt; a usable input device is enough
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, has_input_device, self.device)

    def start(self, locale: str, interim_results: bool = True, continuous: bool = True) -> None:
        try:
            self._loop = asyncio.get_running_loop()
        except RuntimeError as e:
            raise CapabilityError("Vosk capability must be started from the event loop") from e

        model_locale: str | None = self.MODELS.get(self.model_id, {}).get("locale")
        if model_locale and model_locale.split("-")[0] != locale.split("-")[0]:
            logger.warning("Model %s recognizes %s, not %s", self.model_id, model_locale, locale)

        model: Model = self._load_model()
        try:
            recognizer: KaldiRecognizer = KaldiRecognizer(model, self.sample_rate)
        except Exception as e:  # pylint: disable=broad-except
            raise CapabilityError(f"Could not create Vosk recognizer: {e}") from e
        audio: AudioCapture = AudioCapture(
            sample_rate=self.sample_rate,
            chunk_duration_ms=self.chunk_ms,
            device=self.device
        )
        audio.start()

        # Each session gets its own flag; a previous worker may still be
        # finishing and stops on its own flag
        self._stop_flag = threading.Event()
        self._worker = threading.Thread(
            target=self._worker_loop,
            args=(recognizer, audio, self._stop_flag, interim_results, continuous),
            name="VoskWorker",
            daemon=True
        )
        self._worker.start()
        self._post("handle_start")

    def stop(self) -> None:
        self._stop_flag.set()

    def _load_model(self) -> Model:
        if self._model is None:
            if not os.path.exists(self.model_path):
                raise CapabilityError(
                    f"Vosk model not found at {self.model_path}. "
                    f"Please download it with: voicecue --download-model --model-id {self.model_id}"
                )
            logger.info("Loading Vosk model from %s", self.model_path)
            try:
                self._model = Model(self.model_path)
            except Exception as e:  # pylint: disable=broad-except
                raise CapabilityError(
                    f"Could not load Vosk model from {self.model_path}: {e}") from e
        return self._model

    def _post(self, method: str, *args: Any) -> None:
        """Deliver an event to the listener on the event loop thread."""
        listener = self.listener
        if listener is None or self._loop is None or self._loop.is_closed():
            return
        self._loop.call_soon_threadsafe(getattr(listener, method), *args)

    def _worker_loop(
        self,
        recognizer: KaldiRecognizer,
        audio: AudioCapture,
        stop_flag: threading.Event,
        interim_results: bool,
        continuous: bool
    ) -> None:
        last_partial: str = ""
        try:
            while not stop_flag.is_set():
                chunk: bytes | None = audio.get_chunk(timeout=0.1)
                if chunk is None:
                    continue

                if recognizer.AcceptWaveform(chunk):
                    text: str = self._result_text(recognizer.Result(), "text")
                    last_partial = ""
                    if text:
                        self._post("handle_result", text, True)
                        if not continuous:
                            break
                elif interim_results:
                    partial: str = self._result_text(recognizer.PartialResult(), "partial")
                    if partial and partial != last_partial:
                        last_partial = partial
                        self._post("handle_result", partial, False)

            text = self._result_text(recognizer.FinalResult(), "text")
            if text:
                self._post("handle_result", text, True)
        except Exception as e:  # pylint: disable=broad-except
            logger.error("Vosk recognition failed: %s", e, exc_info=True)
            self._post("handle_error", AUDIO_CAPTURE)
        finally:
            audio.stop()
            self._post("handle_end")

    @staticmethod
    def _result_text(raw: str, key: str) -> str:
        result: dict[str, Any] = json.loads(raw)
        text: str = result.get(key, "").strip()
        # Vosk sometimes returns "the" when there's no valid sound input
        if text.lower() == "the":
            return ""
        return text

    @classmethod
    def get_model_path(cls, model_id: str) -> str:
        """Get the path to the model directory."""
        model_info = cls.MODELS.get(model_id)
        if not model_info:
            # Assume custom model path
            return model_id
        return str(MODEL_CACHE_DIR / model_info["dir"])

    @classmethod
    def is_model_downloaded(cls, model_id: str) -> bool:
        return model_id in cls.MODELS and Path(cls.get_model_path(model_id)).exists()

    @classmethod
    def get_available_models(cls) -> list[ModelInfo]:
        """Get list of available Vosk models."""
        return [
            ModelInfo(
                id=model_id,
                name=info["name"],
                provider="vosk",
                locale=info["locale"],
                size_mb=info["size_mb"],
                description=f"Vosk model - {info['name']}",
            )
            for model_id, info in cls.MODELS.items()
        ]

    @classmethod
    def download_model(
        cls,
        model_id: str,
        target_dir: str | None = None,
        progress_callback: Callable[[str, int], None] | None = None
    ) -> str:
        """
        Download a Vosk model.

        Args:
            model_id: Model identifier (e.g., "vosk-en-us-small")
            target_dir: Directory to save the model, or None for default
            progress_callback: Optional callback(stage, percent) for progress updates

        Returns:
            Path to the downloaded model as a string.
        """
        model_info: dict[str, Any] | None = cls.MODELS.get(model_id)
        if not model_info:
            raise ValueError(
                f"Unknown Vosk model: {model_id}. "
                f"Choose from: {list(cls.MODELS.keys())}"
            )

        target_path: Path = Path(target_dir) if target_dir else MODEL_CACHE_DIR
        target_path.mkdir(parents=True, exist_ok=True)
        model_path: Path = target_path / model_info["dir"]

        if model_path.exists():
            logger.info("Model already exists at %s", model_path)
            if progress_callback:
                progress_callback("complete", 100)
            return str(model_path)

        url: str = model_info["url"]
        logger.info("Downloading %s from %s", model_id, url)

        with tempfile.NamedTemporaryFile(suffix=".zip", delete=False) as tmp:
            tmp_path = tmp.name
            if progress_callback:
                progress_callback("downloading", 0)

            def download_hook(block_count: int, block_size: int, total_size: int) -> None:
                if progress_callback and total_size > 0:
                    downloaded = block_count * block_size
                    percent = min(100, int((downloaded / total_size) * 100))
                    progress_callback("downloading", percent)

            urllib.request.urlretrieve(url, tmp_path, download_hook)

        try:
            if progress_callback:
                progress_callback("extracting", 0)
            with zipfile.ZipFile(tmp_path, "r") as zf:
                zf.extractall(target_path)
            if progress_callback:
                progress_callback("complete", 100)
        finally:
            try:
                os.unlink(tmp_path)
            except OSError as e:
                logger.warning("Could not delete temporary file %s: %s", tmp_path, e)

        logger.info("Model installed to %s", model_path)
        return str(model_path)
