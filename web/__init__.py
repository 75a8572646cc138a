"""Flask query surface."""
