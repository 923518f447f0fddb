"""Turn a finished capture into text with Whisper (API or local faster-whisper)"""

import io
import logging
import numpy as np
from typing import Iterable, Optional, Tuple
from pathlib import Path

from ..audio.capture_session import CapturedAudio

logger = logging.getLogger(__name__)

# The transcription API reports no confidence of its own
API_CONFIDENCE = 0.9


def pcm_to_float32(audio: CapturedAudio) -> np.ndarray:
    """Signed 16-bit PCM to mono float32 in [-1.0, 1.0)"""
    samples = np.frombuffer(audio.pcm, dtype=np.int16).astype(np.float32) / 32768.0
    if audio.channels > 1:
        samples = samples.reshape(-1, audio.channels).mean(axis=1)
    return samples


def confidence_from_logprobs(logprobs: Iterable[float]) -> float:
    """Rough 0..1 confidence from faster-whisper segment avg_logprob values"""
    logprobs = list(logprobs)
    if not logprobs:
        return 0.0
    return min(1.0, max(0.0, 1.0 + sum(logprobs) / len(logprobs)))


class SpeechRecognizer:
    """
    Transcribes CapturedAudio.

    With use_api the WAV rendition of the capture is uploaded to the OpenAI
    transcription endpoint; otherwise a faster-whisper model is loaded on
    first use and fed the decoded samples.
    """

    def __init__(
        self,
        model_size: str = "base",
        language: str = "en",
        use_api: bool = True,
        api_model: str = "whisper-1",
        cache_dir: Optional[Path] = None,
        api_client=None,
    ):
        self.model_size = model_size
        self.api_model = api_model
        self.language = language
        self.use_api = use_api
        self.cache_dir = cache_dir or Path.home() / "IdeaCapture" / "cache" / "whisper_model"

        self._model = None
        self._api_client = api_client

    def _client(self):
        if self._api_client is None:
            from openai import OpenAI
            self._api_client = OpenAI()
            logger.info(f"Using OpenAI transcription ({self.api_model})")
        return self._api_client

    def _local_model(self):
        if self._model is None:
            from faster_whisper import WhisperModel

            self.cache_dir.mkdir(parents=True, exist_ok=True)
            logger.info(f"Loading Whisper model: {self.model_size}")
            self._model = WhisperModel(
                self.model_size,
                device="cpu",
                compute_type="int8",
                download_root=str(self.cache_dir),
            )
        return self._model

    def transcribe(self, audio: CapturedAudio) -> Tuple[str, float]:
        """
        Transcribe a finalized capture. Blocking; call it from an executor.

        Returns:
            (text, confidence); ("", 0.0) when nothing was recognised or the
            backend failed
        """
        if audio.num_bytes == 0:
            return "", 0.0

        if self.use_api:
            return self._transcribe_api(audio)
        return self._transcribe_local(audio)

    def _transcribe_local(self, audio: CapturedAudio) -> Tuple[str, float]:
        try:
            segments, _ = self._local_model().transcribe(
                pcm_to_float32(audio),
                language=self.language,
                beam_size=5,
                vad_filter=True,
                vad_parameters={"min_silence_duration_ms": 500},
            )
            segments = list(segments)
        except Exception as e:
            logger.error(f"Transcription error: {e}")
            return "", 0.0

        text = " ".join(s.text.strip() for s in segments).strip()
        confidence = confidence_from_logprobs(s.avg_logprob for s in segments)
        logger.debug(f"Transcribed {audio.duration_seconds:.1f}s: '{text}' ({confidence:.2f})")
        return text, confidence

    def _transcribe_api(self, audio: CapturedAudio) -> Tuple[str, float]:
        upload = io.BytesIO(audio.to_wav_bytes())
        upload.name = "capture.wav"
        try:
            response = self._client().audio.transcriptions.create(
                model=self.api_model,
                file=upload,
                language=self.language,
            )
        except Exception as e:
            logger.error(f"API transcription error: {e}")
            return "", 0.0

        text = (response.text or "").strip()
        logger.debug(f"Transcribed {audio.duration_seconds:.1f}s via API: '{text}'")
        return text, API_CONFIDENCE if text else 0.0
