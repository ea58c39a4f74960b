"""FastAPI middleware and dependencies."""
