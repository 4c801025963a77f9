"""Game score submission and leaderboards."""
