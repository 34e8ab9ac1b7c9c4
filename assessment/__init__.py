"""Assessment attempt lifecycle and analytics aggregation."""
__version__ = "0.1.0"
