"""Summarizator: record or import audio, transcribe it, and summarize it with an LLM."""

__version__ = "0.1.0"
