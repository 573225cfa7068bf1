"""Per-kind AWS handlers."""
