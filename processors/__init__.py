"""Export processors."""
