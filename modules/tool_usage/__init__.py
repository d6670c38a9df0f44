"""modules/tool_usage — Weather and place-search adapters."""
