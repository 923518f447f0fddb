"""Read assistant replies aloud with OpenAI text-to-speech"""

import logging
from typing import Optional

from ..audio.device import load_pyaudio

logger = logging.getLogger(__name__)

# response_format="pcm" is raw signed 16-bit mono at 24 kHz
TTS_SAMPLE_RATE = 24000
MAX_INPUT_LENGTH = 4096


class PyAudioPlayer:
    """Plays 16-bit mono PCM on the default output device"""

    def __init__(self, sample_rate: int = TTS_SAMPLE_RATE, chunk_frames: int = 1024):
        self.sample_rate = sample_rate
        self.chunk_frames = chunk_frames

    def play(self, pcm: bytes) -> None:
        """Blocks until playback finished"""
        pyaudio = load_pyaudio()
        pa = pyaudio.PyAudio()
        try:
            stream = pa.open(
                format=pyaudio.paInt16,
                channels=1,
                rate=self.sample_rate,
                output=True,
            )
            try:
                step = self.chunk_frames * 2
                for offset in range(0, len(pcm), step):
                    stream.write(pcm[offset:offset + step])
            finally:
                stream.stop_stream()
                stream.close()
        finally:
            pa.terminate()


class SpeechSynthesizer:
    """Turns reply text into speech and plays it"""

    def __init__(
        self,
        model: str = "tts-1",
        voice: str = "alloy",
        speed: float = 1.0,
        client=None,
        player: Optional[PyAudioPlayer] = None,
    ):
        self.model = model
        self.voice = voice
        self.speed = speed
        self._api_client = client
        self.player = player or PyAudioPlayer()

    def _client(self):
        if self._api_client is None:
            from openai import OpenAI
            self._api_client = OpenAI()
        return self._api_client

    def synthesize(self, text: str) -> bytes:
        response = self._client().audio.speech.create(
            model=self.model,
            voice=self.voice,
            input=text,
            response_format="pcm",
            speed=self.speed,
        )
        return response.content

    def speak(self, text: str) -> bool:
        """
        Synthesize and play text. Blocking; call it from an executor.

        Returns:
            True when audio was played. Failures are logged, never raised.
        """
        text = text.strip()
        if not text:
            return False
        if len(text) > MAX_INPUT_LENGTH:
            logger.warning(f"Reply too long to read aloud ({len(text)} > {MAX_INPUT_LENGTH} characters)")
            return False

        try:
            pcm = self.synthesize(text)
        except Exception as e:
            logger.error(f"Speech synthesis failed: {e}")
            return False
        if not pcm:
            return False

        try:
            self.player.play(pcm)
        except OSError as e:
            logger.error(f"Audio playback failed: {e}")
            return False
        logger.debug(f"Read aloud {len(text)} characters ({len(pcm) / 2 / TTS_SAMPLE_RATE:.1f}s)")
        return True
