"""Shared models, constants and the HTTP API."""
