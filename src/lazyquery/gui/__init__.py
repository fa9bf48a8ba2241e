"""Qt adapters for lazy query containers."""
