"""Backend package bundling the derivation engine, configuration and HTTP API."""
