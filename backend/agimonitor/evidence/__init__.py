"""Evidence extraction and language utilities."""
