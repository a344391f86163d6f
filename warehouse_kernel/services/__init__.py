"""Kernel services.  Flush only; callers own the transaction."""
