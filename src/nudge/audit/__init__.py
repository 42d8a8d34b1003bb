"""Nudge audit trail: rule firings and run summaries."""
