"""Hosting-service access, unpacking, installing, cleaning and synchronization."""
