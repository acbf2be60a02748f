"""Pydantic models for requests and persisted state."""
