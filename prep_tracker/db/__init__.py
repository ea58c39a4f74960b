"""Database engine, session and store helpers."""
