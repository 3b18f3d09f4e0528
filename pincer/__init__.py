"""pincer - personal AI assistant core."""

__version__ = "0.3.0"
__logo__ = "🦀"
