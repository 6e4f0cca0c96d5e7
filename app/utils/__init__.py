"""Input parsing helpers shared by the services."""
