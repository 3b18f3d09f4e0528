"""CLI module for pincer."""
