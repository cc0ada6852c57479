"""HTTP middleware for the decision engine API."""
