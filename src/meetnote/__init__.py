"""meetnote — transcription orchestration for the meeting note-taking client."""

__version__ = '0.3.0'
