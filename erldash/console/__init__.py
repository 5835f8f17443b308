"""Terminal presentation (rich)."""
