"""HTTP API for Donk."""
