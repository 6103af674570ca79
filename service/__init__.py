"""User delete detector service: scheduler trigger and registration API."""

__version__ = "1.0.0"
