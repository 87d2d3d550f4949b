"""Core building blocks: settings and database primitives."""
