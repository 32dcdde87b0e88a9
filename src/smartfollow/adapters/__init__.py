"""Adapters binding the domain ports to relays, HTTP and storage."""
