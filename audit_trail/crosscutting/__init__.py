"""Cross-cutting concerns: config, logging, errors, timing, middleware."""
