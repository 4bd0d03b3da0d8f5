"""maktaba - library catalog assistant over the Gemini API (text chat + live voice)."""

__version__ = "0.3.0"
