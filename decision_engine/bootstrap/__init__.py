"""Process wiring: database lifecycle and the engine container."""
