"""Endpoint, TLS and logging helpers shared by the client and the CLI."""
