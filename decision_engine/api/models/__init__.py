"""Pydantic request/response models for the decision engine API."""
