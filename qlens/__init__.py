"""Q-Lens: structured insight reports from focus-group transcripts."""

__version__ = "0.4.0"
