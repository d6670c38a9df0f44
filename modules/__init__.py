"""modules — Itinerary engine components grouped by concern."""
