"""Document acquisition: safety gate, fetch strategies, and the strategy chain."""
