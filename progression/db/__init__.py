"""Database layer: engine, sessions, models and shared queries."""
