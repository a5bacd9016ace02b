"""Project context assembly and LLM service core for an editor coding assistant."""

__version__ = "0.1.0"
