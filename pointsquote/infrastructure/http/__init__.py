"""HTTP adapters for the remote lookups, built on httpx."""
