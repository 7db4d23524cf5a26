"""Application services for the readiness engine."""
