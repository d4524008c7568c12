from .logger import EventLogger, setup_logging
from .transcript import load_transcript, save_transcript

__all__ = ["EventLogger", "setup_logging", "load_transcript", "save_transcript"]
