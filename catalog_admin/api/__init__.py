"""HTTP API routers and middleware."""
