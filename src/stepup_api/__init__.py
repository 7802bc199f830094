"""Step-up authentication API for password changes."""

__version__ = "0.1.0"
