"""Pydantic schemas for the readiness engine API."""
