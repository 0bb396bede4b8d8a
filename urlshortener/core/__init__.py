"""Configuration, logging, validation, error types and runtime managers."""
