import asyncio

import pytest

from idea_capture.audio.device import AudioConstraints, negotiate_encoding
from idea_capture.audio.device_manager import AudioDeviceManager
from idea_capture.exceptions import DeviceUnavailable, PermissionDenied

from conftest import FakeOpener, wait_until


def test_acquire_reuses_active_handle(device_manager, opener):
    async def scenario():
        first = await device_manager.acquire()
        second = await device_manager.acquire()
        return first, second

    first, second = asyncio.run(scenario())

    assert first is second
    assert opener.calls == 1
    assert device_manager.is_acquired


def test_release_forces_new_open(device_manager, opener):
    async def scenario():
        first = await device_manager.acquire()
        device_manager.release()
        second = await device_manager.acquire()
        return first, second

    first, second = asyncio.run(scenario())

    assert first is not second
    assert first.closed
    assert opener.calls == 2


def test_ended_handle_is_reacquired(device_manager, opener):
    async def scenario():
        first = await device_manager.acquire()
        first._active = False
        return first, await device_manager.acquire()

    first, second = asyncio.run(scenario())

    assert second is not first
    assert opener.calls == 2


def test_concurrent_acquire_shares_one_open():
    opener = FakeOpener()

    async def scenario():
        opener.gate = asyncio.Event()
        manager = AudioDeviceManager(opener)
        waiters = asyncio.gather(manager.acquire(), manager.acquire())
        await asyncio.sleep(0)
        opener.gate.set()
        return await waiters

    first, second = asyncio.run(scenario())

    assert first is second
    assert opener.calls == 1


def test_permission_denied_propagates():
    manager = AudioDeviceManager(FakeOpener(error=PermissionDenied("denied")))

    with pytest.raises(PermissionDenied):
        asyncio.run(manager.acquire())
    assert manager.handle is None


def test_unexpected_open_failure_becomes_device_unavailable():
    manager = AudioDeviceManager(FakeOpener(error=RuntimeError("PortAudio exploded")))

    with pytest.raises(DeviceUnavailable, match="PortAudio exploded"):
        asyncio.run(manager.acquire())


def test_release_without_handle_is_harmless(device_manager):
    device_manager.release()
    assert not device_manager.is_acquired


@pytest.mark.parametrize("hint,expected", [
    ("audio/wav", "audio/wav"),
    ("audio/webm;codecs=opus,audio/L16", "audio/L16"),
    ("audio/webm, audio/wav;codecs=pcm", "audio/wav"),
    ("audio/ogg", "audio/wav"),
    ("", "audio/wav"),
])
def test_negotiate_encoding(hint, expected):
    assert negotiate_encoding(hint) == expected


def test_constraints_chunk_size():
    assert AudioConstraints(sample_rate=16000, chunk_duration_ms=100).chunk_size == 1600


def test_cancelled_acquire_does_not_pin_a_dead_handle():
    opener = FakeOpener()

    async def scenario():
        opener.gate = asyncio.Event()
        manager = AudioDeviceManager(opener)
        waiter = asyncio.ensure_future(manager.acquire())
        await wait_until(lambda: opener.calls == 1)
        waiter.cancel()
        opener.gate.set()
        await wait_until(lambda: manager.handle is not None)

        first = manager.handle
        first.close()
        second = await manager.acquire()
        return first, second

    first, second = asyncio.run(scenario())

    assert second is not first
    assert second.active
    assert opener.calls == 2


def test_release_discards_open_in_flight():
    opener = FakeOpener()

    async def scenario():
        opener.gate = asyncio.Event()
        manager = AudioDeviceManager(opener)
        waiter = asyncio.ensure_future(manager.acquire())
        await wait_until(lambda: opener.calls == 1)
        manager.release()
        opener.gate.set()
        with pytest.raises(DeviceUnavailable):
            await waiter
        return manager

    manager = asyncio.run(scenario())

    assert manager.handle is None
    assert opener.device.closed


def test_acquire_after_release_starts_a_fresh_open():
    opener = FakeOpener()

    async def scenario():
        opener.gate = asyncio.Event()
        manager = AudioDeviceManager(opener)
        stale = asyncio.ensure_future(manager.acquire())
        await wait_until(lambda: opener.calls == 1)
        manager.release()
        fresh = asyncio.ensure_future(manager.acquire())
        await wait_until(lambda: opener.calls == 2)
        opener.gate.set()
        results = await asyncio.gather(stale, fresh, return_exceptions=True)
        return manager, results

    manager, (stale, fresh) = asyncio.run(scenario())

    assert isinstance(stale, DeviceUnavailable)
    assert fresh is manager.handle
    assert fresh.active
