"""core — enums, error taxonomy and the in-process event bus."""
