from .recognizer import SpeechRecognizer
from .synthesizer import PyAudioPlayer, SpeechSynthesizer

__all__ = ['SpeechRecognizer', 'SpeechSynthesizer', 'PyAudioPlayer']
