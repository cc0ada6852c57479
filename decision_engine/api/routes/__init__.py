"""API routers for the decision engine."""
