"""Client-side achievement delivery and notification scheduling."""
