"""admin-api package."""
