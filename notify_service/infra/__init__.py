"""Infrastructure adapters: logging, database sessions, email transports."""
