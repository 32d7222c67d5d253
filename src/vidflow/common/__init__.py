"""Common module - protocols, schemas, persistence and base classes."""
