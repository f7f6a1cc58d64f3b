"""montac – monitor CPU temperatures and clock speeds while a command runs."""

__version__ = "0.1.0"
