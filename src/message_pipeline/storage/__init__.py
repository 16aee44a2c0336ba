"""SQLModel storage for messages and their properties."""
