"""Metrics snapshots and profile scoring."""
