"""Entity directory and entity models."""
