"""Application-layer DTOs; the API layer maps these to pydantic models."""
