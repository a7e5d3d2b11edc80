"""Temporal workflows and activities for background verification work."""
