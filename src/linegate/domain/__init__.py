"""Domain models shared across the linegate packages."""
