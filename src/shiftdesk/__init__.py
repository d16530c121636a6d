"""shiftdesk: client-side domain cache for shift and roster administration."""

__version__ = "0.1.0"
