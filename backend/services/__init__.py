"""Domain services and background tasks."""
