"""HTTP API for DocFlow."""
