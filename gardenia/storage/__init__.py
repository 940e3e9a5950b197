"""Persistence of installed-version records."""
