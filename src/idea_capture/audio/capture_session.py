"""Hold-to-talk capture sessions"""

import asyncio
import io
import logging
import uuid
import wave
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from functools import partial
from typing import Callable, List, Optional, Tuple

from .device import DEFAULT_ENCODING, DeviceHandle
from .device_manager import AudioDeviceManager
from ..exceptions import AcquisitionRaceDiscarded, CaptureError, DeviceUnavailable

logger = logging.getLogger(__name__)

MAX_CAPTURE_SECONDS = 60.0


class CaptureState(Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    RECORDING = "recording"
    STOP_REQUESTED_DURING_ACQUIRE = "stop_requested_during_acquire"
    FINALIZING = "finalizing"


class CaptureEvent(Enum):
    HOLD_START = "hold_start"
    HOLD_END = "hold_end"
    ACQUIRED = "acquired"
    DEADLINE = "deadline"
    STOPPED = "stopped"
    DEVICE_ERROR = "device_error"


def transition(state: CaptureState, event: CaptureEvent, hold_intent: bool) -> CaptureState:
    """
    Next state for (state, event, hold_intent).

    Pairs with no transition return the current state unchanged.
    """
    if event is CaptureEvent.DEVICE_ERROR:
        return CaptureState.IDLE

    if state is CaptureState.IDLE:
        if event is CaptureEvent.HOLD_START:
            return CaptureState.ACQUIRING

    elif state is CaptureState.ACQUIRING:
        if event is CaptureEvent.HOLD_END:
            return CaptureState.STOP_REQUESTED_DURING_ACQUIRE
        if event is CaptureEvent.ACQUIRED:
            return CaptureState.RECORDING if hold_intent else CaptureState.FINALIZING

    elif state is CaptureState.STOP_REQUESTED_DURING_ACQUIRE:
        if event is CaptureEvent.ACQUIRED:
            return CaptureState.FINALIZING

    elif state is CaptureState.RECORDING:
        if event in (CaptureEvent.HOLD_END, CaptureEvent.DEADLINE):
            return CaptureState.FINALIZING

    elif state is CaptureState.FINALIZING:
        if event is CaptureEvent.STOPPED:
            return CaptureState.IDLE

    return state


@dataclass
class CapturedAudio:
    """A finalized recording"""
    chunks: Tuple[bytes, ...]
    encoding_tag: str
    sample_rate: int = 16000
    channels: int = 1
    sample_width: int = 2

    @property
    def num_bytes(self) -> int:
        return sum(len(chunk) for chunk in self.chunks)

    @property
    def duration_seconds(self) -> float:
        frame_bytes = self.sample_width * self.channels
        return self.num_bytes / float(frame_bytes * self.sample_rate)

    @property
    def pcm(self) -> bytes:
        return b"".join(self.chunks)

    def to_wav_bytes(self) -> bytes:
        """Wrap the PCM data in a WAV container"""
        buffer = io.BytesIO()
        with wave.open(buffer, 'wb') as wav:
            wav.setnchannels(self.channels)
            wav.setsampwidth(self.sample_width)
            wav.setframerate(self.sample_rate)
            wav.writeframes(self.pcm)
        return buffer.getvalue()


@dataclass
class CaptureSession:
    """The single in-flight recording attempt"""
    id: str = field(default_factory=lambda: uuid.uuid4().hex[:8])
    state: CaptureState = CaptureState.IDLE
    hold_intent: bool = False
    deadline_at: Optional[float] = None
    chunks: List[bytes] = field(default_factory=list)
    encoding_tag: Optional[str] = None
    started_at: datetime = field(default_factory=datetime.now)
    accepting: bool = False
    stop_requested: asyncio.Event = field(default_factory=asyncio.Event)


class CaptureSessionController:
    """
    Turns hold-start / hold-end gestures into finalized recordings.

    At most one session exists at a time. Gestures are plain method calls made
    on the event loop; device acquisition and stop confirmation complete
    asynchronously and may interleave with new gestures in any order.

    Callbacks:
        on_artifact(CapturedAudio | None): after every finalize, None when
            nothing was captured
        on_error(CaptureError): once per failed session
        on_timeout(): once per session stopped by the duration limit
    """

    def __init__(
        self,
        device_manager: AudioDeviceManager,
        max_duration_seconds: float = MAX_CAPTURE_SECONDS,
        mime_hint: str = DEFAULT_ENCODING,
        on_artifact: Optional[Callable[[Optional[CapturedAudio]], None]] = None,
        on_error: Optional[Callable[[CaptureError], None]] = None,
        on_timeout: Optional[Callable[[], None]] = None,
    ):
        self.device_manager = device_manager
        self.max_duration_seconds = max_duration_seconds
        self.mime_hint = mime_hint
        self._on_artifact = on_artifact
        self._on_error = on_error
        self._on_timeout = on_timeout

        self._session: Optional[CaptureSession] = None
        self._task: Optional[asyncio.Task] = None
        self._deadline_timer: Optional[asyncio.TimerHandle] = None

    @property
    def state(self) -> CaptureState:
        if self._session is None:
            return CaptureState.IDLE
        return self._session.state

    @property
    def session(self) -> Optional[CaptureSession]:
        return self._session

    @property
    def is_recording(self) -> bool:
        return self.state is CaptureState.RECORDING

    @property
    def deadline_armed(self) -> bool:
        return self._deadline_timer is not None

    # Gestures

    def hold_start(self) -> bool:
        """Begin a session. Ignored unless the controller is idle."""
        if self._session is not None:
            logger.debug(f"hold_start ignored, session {self._session.id} is {self._session.state.value}")
            return False

        session = CaptureSession(hold_intent=True)
        self._session = session
        self._dispatch(session, CaptureEvent.HOLD_START)
        self._task = asyncio.get_running_loop().create_task(self._run(session))
        logger.info(f"Capture {session.id} started, acquiring device")
        return True

    def hold_end(self) -> bool:
        """Release the hold. Ignored when idle."""
        session = self._session
        if session is None:
            return False
        session.hold_intent = False
        return self._dispatch(session, CaptureEvent.HOLD_END)

    async def wait_idle(self) -> Optional[CapturedAudio]:
        """Wait for the current session, if any, to finish"""
        task = self._task
        if task is None:
            return None
        return await task

    # State machine plumbing

    def _dispatch(self, session: CaptureSession, event: CaptureEvent) -> bool:
        """Apply an event to the session; returns True when the state changed"""
        old = session.state
        new = transition(old, event, session.hold_intent)
        if new is old:
            return False

        session.state = new
        logger.debug(f"Capture {session.id}: {old.value} --{event.value}--> {new.value}")

        if new is not CaptureState.RECORDING:
            self._disarm_deadline()
        if new is CaptureState.RECORDING:
            self._arm_deadline(session)
        if new is CaptureState.FINALIZING:
            session.stop_requested.set()
        if new is CaptureState.IDLE:
            session.accepting = False
            session.chunks = []
            session.stop_requested.set()
            if self._session is session:
                self._session = None
        return True

    def _arm_deadline(self, session: CaptureSession) -> None:
        self._disarm_deadline()
        loop = asyncio.get_running_loop()
        session.deadline_at = loop.time() + self.max_duration_seconds
        self._deadline_timer = loop.call_later(
            self.max_duration_seconds, self._on_deadline, session
        )

    def _disarm_deadline(self) -> None:
        if self._deadline_timer is not None:
            self._deadline_timer.cancel()
            self._deadline_timer = None

    def _on_deadline(self, session: CaptureSession) -> None:
        self._deadline_timer = None
        if session is not self._session:
            return
        if self._dispatch(session, CaptureEvent.DEADLINE):
            logger.info(f"Capture {session.id} reached {self.max_duration_seconds:.0f}s, auto-stopping")
            if self._on_timeout:
                self._on_timeout()

    def _on_fragment(self, session: CaptureSession, data: bytes) -> None:
        if session is self._session and session.accepting and data:
            session.chunks.append(data)

    def _on_device_error(self, session: CaptureSession, error: Exception) -> None:
        if not isinstance(error, CaptureError):
            error = DeviceUnavailable(str(error))
        self._fail(session, error)

    def _fail(self, session: CaptureSession, error: CaptureError) -> None:
        if session is not self._session:
            return
        self._dispatch(session, CaptureEvent.DEVICE_ERROR)
        logger.error(f"Capture {session.id} failed: {error}")
        if self._on_error:
            self._on_error(error)

    # Session lifecycle

    async def _run(self, session: CaptureSession) -> Optional[CapturedAudio]:
        try:
            handle = await self.device_manager.acquire()
        except CaptureError as e:
            self._fail(session, e)
            return None

        if session is not self._session:
            return None

        if not self._start_encoding(session, handle):
            return None

        # Straight to FINALIZING when the hold already ended
        self._dispatch(session, CaptureEvent.ACQUIRED)
        await session.stop_requested.wait()
        if session is not self._session:
            return None

        try:
            await handle.stop_encoding()
        except CaptureError as e:
            self._fail(session, e)
            return None
        except Exception as e:
            logger.exception(f"Unexpected error stopping capture {session.id}")
            self._fail(session, DeviceUnavailable(str(e)))
            return None

        if session is not self._session:
            return None

        session.accepting = False
        try:
            artifact = self._build_artifact(session)
        except AcquisitionRaceDiscarded:
            logger.info(f"Capture {session.id}: gesture too short, nothing captured")
            artifact = None
        self._dispatch(session, CaptureEvent.STOPPED)
        if self._on_artifact:
            self._on_artifact(artifact)
        return artifact

    def _start_encoding(self, session: CaptureSession, handle: DeviceHandle) -> bool:
        session.accepting = True
        try:
            session.encoding_tag = handle.start_encoding(
                self.mime_hint,
                partial(self._on_fragment, session),
                partial(self._on_device_error, session),
            )
        except CaptureError as e:
            self._fail(session, e)
            return False
        except Exception as e:
            logger.exception(f"Unexpected error starting capture {session.id}")
            self._fail(session, DeviceUnavailable(str(e)))
            return False
        return session is self._session

    def _build_artifact(self, session: CaptureSession) -> CapturedAudio:
        if not session.chunks:
            raise AcquisitionRaceDiscarded(session.id)

        constraints = self.device_manager.constraints
        artifact = CapturedAudio(
            chunks=tuple(session.chunks),
            encoding_tag=session.encoding_tag or DEFAULT_ENCODING,
            sample_rate=constraints.sample_rate,
            channels=constraints.channels,
        )
        logger.info(f"Capture {session.id} finalized: {artifact.duration_seconds:.1f}s ({artifact.encoding_tag})")
        return artifact
