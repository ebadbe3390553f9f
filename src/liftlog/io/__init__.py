"""Storage interfaces, reference stores, and JSON serialization."""
