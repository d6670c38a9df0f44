"""schemas — Data model shared by every engine module."""
