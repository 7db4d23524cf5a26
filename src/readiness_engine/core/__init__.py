"""Framework-free domain types, scoring, and assessment services."""
