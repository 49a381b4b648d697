"""Database engine, sessions and metadata registry."""
