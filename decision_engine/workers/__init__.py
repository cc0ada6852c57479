"""Background workers for the decision engine."""
