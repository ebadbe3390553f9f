"""Domain models and the session, quota, migration and streak logic."""
