"""VibelyTube — YouTube video analysis and persona chat backend."""

__version__ = "1.0.0"
