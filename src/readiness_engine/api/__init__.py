"""HTTP surface of the readiness engine."""
