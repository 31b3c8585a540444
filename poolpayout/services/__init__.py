"""Domain services for pool processing."""
