"""Core models: configuration, errors, logging and report structures."""
