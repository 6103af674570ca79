"""HTTP routes for the user delete detector service."""
