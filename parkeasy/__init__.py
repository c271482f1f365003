"""ParkEasy backend: peer-to-peer parking spot marketplace."""

__version__ = "1.0.0"
