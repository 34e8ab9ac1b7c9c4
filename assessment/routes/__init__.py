"""API route modules."""
from assessment.routes import analytics

__all__ = ["analytics"]
