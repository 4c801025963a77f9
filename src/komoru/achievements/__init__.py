"""Achievement evaluation and unlock engine."""
