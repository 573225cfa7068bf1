"""AWS infrastructure: client wrapper and per-kind handlers."""
