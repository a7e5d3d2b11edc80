"""Pydantic schemas and domain enums."""
