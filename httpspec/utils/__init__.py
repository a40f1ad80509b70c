"""Small helpers with no spec state."""
