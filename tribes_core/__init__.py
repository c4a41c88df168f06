"""Rules engine for a turn-based tribes strategy game."""
