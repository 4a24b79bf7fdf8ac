"""HTTP layer: routers + schemas."""
