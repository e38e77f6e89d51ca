"""Speech capability ports."""

from .base import EventSink, SpeechPort
from .console import ConsoleSpeechPort
from .scripted import SILENT, Delayed, ScriptedSpeechPort

__all__ = [
    "ConsoleSpeechPort",
    "Delayed",
    "EventSink",
    "SILENT",
    "ScriptedSpeechPort",
    "SpeechPort",
]
