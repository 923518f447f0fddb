"""Hold-to-talk idea capture with note-app export"""

__version__ = "0.1.0"
