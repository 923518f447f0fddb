"""Microphone access through PyAudio"""

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from ..exceptions import DeviceUnavailable, PermissionDenied

logger = logging.getLogger(__name__)

FragmentCallback = Callable[[bytes], None]
ErrorCallback = Callable[[Exception], None]

# Encodings the PCM stream can be tagged with, in preference order
SUPPORTED_ENCODINGS = ('audio/wav', 'audio/L16')
DEFAULT_ENCODING = 'audio/wav'


def load_pyaudio():
    """The pyaudio module, imported on first use"""
    import pyaudio
    return pyaudio


@dataclass
class AudioConstraints:
    """What to ask of the input device"""
    sample_rate: int = 16000
    channels: int = 1
    chunk_duration_ms: int = 100
    device_index: Optional[int] = None

    @property
    def chunk_size(self) -> int:
        return int(self.sample_rate * self.chunk_duration_ms / 1000)


def negotiate_encoding(mime_hint: str) -> str:
    """
    Pick the first supported encoding from a comma separated preference list.

    Parameters after ';' are ignored when matching ("audio/wav;codecs=pcm"
    matches "audio/wav").
    """
    for candidate in (mime_hint or '').split(','):
        base = candidate.split(';')[0].strip()
        for supported in SUPPORTED_ENCODINGS:
            if base.lower() == supported.lower():
                return supported
    return DEFAULT_ENCODING


class DeviceHandle(ABC):
    """An acquired audio input resource"""

    @property
    @abstractmethod
    def active(self) -> bool:
        """False once the underlying resource has ended"""

    @abstractmethod
    def start_encoding(
        self,
        mime_hint: str,
        on_fragment: FragmentCallback,
        on_error: ErrorCallback,
    ) -> str:
        """
        Begin delivering audio fragments to on_fragment.

        Returns:
            The negotiated encoding tag
        """

    @abstractmethod
    async def stop_encoding(self) -> None:
        """Stop encoding; resolves once every buffered fragment was delivered"""

    @abstractmethod
    def close(self) -> None:
        """Release the resource for good"""


class PyAudioDevice(DeviceHandle):
    """PyAudio input stream in callback mode, bridged onto the event loop"""

    def __init__(self, pa, stream, constraints: AudioConstraints, loop: asyncio.AbstractEventLoop):
        self._pyaudio = pa
        self._stream = stream
        self.constraints = constraints
        self._loop = loop
        self._on_fragment: Optional[FragmentCallback] = None
        self._on_error: Optional[ErrorCallback] = None
        self._closed = False

    @property
    def active(self) -> bool:
        return not self._closed and self._stream is not None

    def _stream_callback(self, in_data, frame_count, time_info, status):
        """Runs on the PortAudio thread"""
        if in_data and self._on_fragment is not None:
            self._loop.call_soon_threadsafe(self._deliver, in_data)
        return (None, load_pyaudio().paContinue)

    def _deliver(self, data: bytes) -> None:
        callback = self._on_fragment
        if callback is not None:
            callback(data)

    def start_encoding(
        self,
        mime_hint: str,
        on_fragment: FragmentCallback,
        on_error: ErrorCallback,
    ) -> str:
        if not self.active:
            raise DeviceUnavailable("Audio device is no longer active")

        encoding = negotiate_encoding(mime_hint)
        self._on_fragment = on_fragment
        self._on_error = on_error
        try:
            self._stream.start_stream()
        except OSError as e:
            self._fail(e)
            raise DeviceUnavailable(f"Could not start audio stream: {e}") from e

        logger.debug(f"Encoding started ({encoding})")
        return encoding

    async def stop_encoding(self) -> None:
        if not self.active:
            self._on_fragment = None
            return
        try:
            # stop_stream blocks until the last callback returned
            await self._loop.run_in_executor(None, self._stream.stop_stream)
        except OSError as e:
            self._fail(e)
            raise DeviceUnavailable(f"Could not stop audio stream: {e}") from e

        # Fragments queued by the final callbacks run before this point resumes
        await asyncio.sleep(0)
        self._on_fragment = None
        self._on_error = None
        logger.debug("Encoding stopped")

    def _fail(self, error: Exception) -> None:
        """Mark the handle dead and report the error"""
        on_error = self._on_error
        self.close()
        if on_error is not None:
            on_error(error)

    def close(self) -> None:
        """Cleanup PyAudio resources"""
        if self._closed:
            return
        self._closed = True
        self._on_fragment = None
        self._on_error = None
        if self._stream:
            try:
                if self._stream.is_active():
                    self._stream.stop_stream()
            except OSError as e:
                logger.warning(f"Error stopping audio stream: {e}")
            try:
                self._stream.close()
            except OSError as e:
                logger.warning(f"Error closing audio stream: {e}")
            self._stream = None
        if self._pyaudio:
            self._pyaudio.terminate()
            self._pyaudio = None
        logger.info("Audio device released")


def _is_permission_error(error: Exception) -> bool:
    message = str(error).lower()
    return isinstance(error, PermissionError) or 'permission' in message or 'denied' in message


def _open_blocking(constraints: AudioConstraints, loop: asyncio.AbstractEventLoop) -> PyAudioDevice:
    pyaudio = load_pyaudio()

    pa = pyaudio.PyAudio()
    try:
        has_input = any(
            pa.get_device_info_by_index(i)['maxInputChannels'] > 0
            for i in range(pa.get_device_count())
        )
        if not has_input:
            raise DeviceUnavailable("No audio input device found")

        device = PyAudioDevice(pa, None, constraints, loop)
        device._stream = pa.open(
            format=pyaudio.paInt16,
            channels=constraints.channels,
            rate=constraints.sample_rate,
            input=True,
            input_device_index=constraints.device_index,
            frames_per_buffer=constraints.chunk_size,
            stream_callback=device._stream_callback,
            start=False,
        )
        return device
    except DeviceUnavailable:
        pa.terminate()
        raise
    except OSError as e:
        pa.terminate()
        if _is_permission_error(e):
            raise PermissionDenied(f"Microphone access denied: {e}") from e
        raise DeviceUnavailable(f"Could not open audio input: {e}") from e


async def open_pyaudio_device(constraints: AudioConstraints) -> DeviceHandle:
    """Open the microphone; PortAudio initialisation runs off the event loop"""
    loop = asyncio.get_running_loop()
    device = await loop.run_in_executor(None, _open_blocking, constraints, loop)
    logger.info(
        f"Audio device opened ({constraints.sample_rate} Hz, "
        f"{constraints.channels} ch, device={constraints.device_index})"
    )
    return device


def list_devices() -> list:
    """List available audio input devices"""
    pa = load_pyaudio().PyAudio()
    devices = []

    try:
        for i in range(pa.get_device_count()):
            info = pa.get_device_info_by_index(i)
            if info['maxInputChannels'] > 0:
                devices.append({
                    'index': i,
                    'name': info['name'],
                    'sample_rate': int(info['defaultSampleRate']),
                })
    finally:
        pa.terminate()
    return devices
