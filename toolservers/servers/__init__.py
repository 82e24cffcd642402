"""Runnable reference tool servers (python -m toolservers.servers.<name>)."""
