"""Cluster managers supplying distributed maps to the shared data registry."""
