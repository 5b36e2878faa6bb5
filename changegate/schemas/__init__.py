"""Pydantic schemas for change records, reports, and configuration."""
