"""jollybot - swaps skull reactions for the jollyskull."""

__version__ = "0.1.0"
