"""Redis-backed persistent job queue for the compliance platform."""

__version__ = "1.0.0"
