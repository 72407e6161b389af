"""HTTP API for installer ops."""
