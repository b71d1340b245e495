"""Database layer for DocFlow."""
