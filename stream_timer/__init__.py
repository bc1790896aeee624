"""Stream schedule timer with signed, shareable display links."""

__version__ = "0.1.0"
