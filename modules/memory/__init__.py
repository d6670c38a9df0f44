"""modules/memory — Session-scoped Decision Log."""
