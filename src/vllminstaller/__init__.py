"""Installer for a vLLM OpenAI-compatible inference server on Ubuntu GPU hosts."""

__version__ = "5.0.0"
