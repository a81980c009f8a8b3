"""CTI call monitor: call lifecycle aggregation and phone number resolution."""

__version__ = "0.1.0"
