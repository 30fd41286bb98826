"""Estimate admin CLI."""
