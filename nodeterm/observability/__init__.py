"""Logging, metrics and application context for nodeterm."""
