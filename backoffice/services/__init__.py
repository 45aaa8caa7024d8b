"""Service layer: banking API access, per-session caching and page containers."""
