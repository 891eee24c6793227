"""journeytrack - journey tracking from live GPS samples."""

__version__ = "0.1.0"
