"""Backend access, attempt delivery and analytics services."""
