"""Run settings and path resolution."""
