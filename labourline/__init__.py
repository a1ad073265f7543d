"""Voice-call registration and job matching for daily-wage workers and employers."""

__version__ = "0.1.0"
