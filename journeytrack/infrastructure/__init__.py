"""journeytrack Infrastructure - positioning sources and persistence."""
