"""Database engine helpers for the draw archive."""
