"""Pure domain value objects for the HR kernel (zero I/O)."""
