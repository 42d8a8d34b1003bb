"""Nudge rule catalog and evaluation engine."""

from nudge.rules.catalog import DEFAULT_RULES, load_catalog
from nudge.rules.engine import RuleEngine
from nudge.rules.models import Rule

__all__ = ["DEFAULT_RULES", "Rule", "RuleEngine", "load_catalog"]
