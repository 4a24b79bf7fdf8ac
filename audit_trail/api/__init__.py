"""HTTP application: app factory and exception handlers."""
