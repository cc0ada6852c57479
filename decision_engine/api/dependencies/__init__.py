"""FastAPI dependencies reading from the process container."""
