"""Domain layer: models, errors, events and pure selection logic."""
