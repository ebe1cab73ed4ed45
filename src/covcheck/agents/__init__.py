"""Analysis and reporting agents."""
