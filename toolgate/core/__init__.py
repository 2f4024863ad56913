"""Process-wide configuration and logging for toolgate."""
