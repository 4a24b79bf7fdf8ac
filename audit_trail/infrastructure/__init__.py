"""Infrastructure adapters: Postgres pool, repositories."""
