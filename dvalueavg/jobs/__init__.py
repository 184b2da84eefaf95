"""Map, combine and reduce functions for the two pipeline jobs."""
