"""Get-or-create ownership of the single audio input resource"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from .device import AudioConstraints, DeviceHandle
from ..exceptions import CaptureError, DeviceUnavailable

logger = logging.getLogger(__name__)

DeviceOpener = Callable[[AudioConstraints], Awaitable[DeviceHandle]]


class AudioDeviceManager:
    """
    Owns the DeviceHandle for the lifetime of the app.

    The handle is kept between captures so the user is not asked for
    permission again; only release() forces a fresh open.
    """

    def __init__(self, opener: DeviceOpener, constraints: Optional[AudioConstraints] = None):
        self._opener = opener
        self.constraints = constraints or AudioConstraints()
        self._handle: Optional[DeviceHandle] = None
        self._pending: Optional[asyncio.Future] = None
        # Bumped by release() so an open that finishes afterwards is dropped
        self._generation = 0
        self.open_count = 0

    async def acquire(self) -> DeviceHandle:
        """
        Return the active handle, opening the device only if needed.

        Raises:
            PermissionDenied: the user refused microphone access
            DeviceUnavailable: no device, or it could not be opened
        """
        if self._handle is not None and self._handle.active:
            return self._handle

        if self._handle is not None:
            logger.info("Audio device ended, reacquiring")
            self._handle = None

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._open(self._generation))
        return await asyncio.shield(self._pending)

    async def _open(self, generation: int) -> DeviceHandle:
        self.open_count += 1
        try:
            handle = await self._opener(self.constraints)
        except CaptureError:
            raise
        except Exception as e:
            raise DeviceUnavailable(f"Could not open audio device: {e}") from e
        finally:
            if self._pending is asyncio.current_task():
                self._pending = None

        if generation != self._generation:
            handle.close()
            raise DeviceUnavailable("Audio device was released while opening")
        self._handle = handle
        return handle

    def release(self) -> None:
        """Stop and discard the handle; an open still in flight is discarded too"""
        self._generation += 1
        self._pending = None
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.close()
            logger.info("Audio device handle released")

    @property
    def handle(self) -> Optional[DeviceHandle]:
        return self._handle

    @property
    def is_acquired(self) -> bool:
        return self._handle is not None and self._handle.active
