"""Web API layer (FastAPI)."""
