"""Concrete adapters for the provider interfaces (catalog, images, cache)."""
