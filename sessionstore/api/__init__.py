"""HTTP layer: FastAPI dependencies and the session API router."""
