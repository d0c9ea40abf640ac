"""Client for submitting IAT test results to the result store API."""

__version__ = "0.1.0"
