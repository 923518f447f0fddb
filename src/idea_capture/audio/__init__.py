from .device import AudioConstraints, DeviceHandle, PyAudioDevice, open_pyaudio_device
from .device_manager import AudioDeviceManager
from .capture_session import (
    CaptureSessionController,
    CaptureState,
    CaptureEvent,
    CapturedAudio,
    transition,
)

__all__ = [
    'AudioConstraints',
    'DeviceHandle',
    'PyAudioDevice',
    'open_pyaudio_device',
    'AudioDeviceManager',
    'CaptureSessionController',
    'CaptureState',
    'CaptureEvent',
    'CapturedAudio',
    'transition',
]
