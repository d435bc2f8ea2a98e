"""Same-origin mirroring reverse proxy for embedding third-party pages."""
