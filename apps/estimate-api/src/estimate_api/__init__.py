"""Estimate workflow HTTP API."""
