"""Shared fakes for capture and export tests."""

import asyncio
from typing import List, Optional

import pytest

from idea_capture.audio.device import AudioConstraints, DeviceHandle, negotiate_encoding
from idea_capture.audio.device_manager import AudioDeviceManager
from idea_capture.config import SettingsManager


class FakeDevice(DeviceHandle):
    """In-memory DeviceHandle; tests push fragments with emit()"""

    def __init__(self):
        self._active = True
        self.closed = False
        self.on_fragment = None
        self.on_error = None
        self.start_calls = 0
        self.stop_calls = 0
        self.stop_gate: Optional[asyncio.Event] = None
        self.stop_error: Optional[Exception] = None
        self.flush_fragments: List[bytes] = []
        self.last_on_fragment = None

    @property
    def active(self) -> bool:
        return self._active

    def start_encoding(self, mime_hint, on_fragment, on_error) -> str:
        self.start_calls += 1
        self.on_fragment = on_fragment
        self.last_on_fragment = on_fragment
        self.on_error = on_error
        return negotiate_encoding(mime_hint)

    def emit(self, data: bytes) -> None:
        self.on_fragment(data)

    async def stop_encoding(self) -> None:
        self.stop_calls += 1
        if self.stop_gate is not None:
            await self.stop_gate.wait()
        if self.stop_error is not None:
            self.fail(self.stop_error)
            raise self.stop_error
        for fragment in self.flush_fragments:
            if self.on_fragment:
                self.on_fragment(fragment)
        self.on_fragment = None

    def fail(self, error: Exception) -> None:
        self._active = False
        self.on_error(error)

    def close(self) -> None:
        self._active = False
        self.closed = True


class FakeOpener:
    """open(constraints) collaborator returning fresh FakeDevices"""

    def __init__(self, error: Exception = None, gate: asyncio.Event = None, flush_fragments=None):
        self.error = error
        self.gate = gate
        self.flush_fragments = list(flush_fragments or [])
        self.calls = 0
        self.devices: List[FakeDevice] = []

    async def __call__(self, constraints: AudioConstraints) -> FakeDevice:
        self.calls += 1
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        device = FakeDevice()
        device.flush_fragments = list(self.flush_fragments)
        self.devices.append(device)
        return device

    @property
    def device(self) -> FakeDevice:
        return self.devices[-1]


class Recorder:
    """Collects controller callbacks"""

    def __init__(self):
        self.artifacts = []
        self.errors = []
        self.timeouts = 0

    def on_artifact(self, artifact):
        self.artifacts.append(artifact)

    def on_error(self, error):
        self.errors.append(error)

    def on_timeout(self):
        self.timeouts += 1


async def wait_until(predicate, attempts: int = 100):
    """Yield to the loop until predicate() holds"""
    for _ in range(attempts):
        if predicate():
            return
        await asyncio.sleep(0)
    raise AssertionError("condition not reached")


@pytest.fixture
def opener():
    return FakeOpener()


@pytest.fixture
def device_manager(opener):
    return AudioDeviceManager(opener, AudioConstraints())


@pytest.fixture
def recorder():
    return Recorder()


@pytest.fixture
def settings(tmp_path):
    settings = SettingsManager(tmp_path / "config")
    settings.set('logging', 'session_dir', str(tmp_path / "sessions"))
    settings.set('export', 'download_dir', str(tmp_path / "exports"))
    return settings
