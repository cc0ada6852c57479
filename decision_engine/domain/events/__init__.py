"""Domain events emitted by the decision engine."""
