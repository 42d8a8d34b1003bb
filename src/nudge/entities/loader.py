"""Load entities and their activity aggregates from a YAML fixture file.

Expected layout::

    entities:
      - id: clinic-1
        name: Riverside Clinic
        phone: "555-0100"
        activity:
          profile_views: 120
          total_clicks: 4
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml

from nudge.entities.directory import InMemoryEntityDirectory
from nudge.entities.models import Entity
from nudge.metrics.models import ActivityCounts
from nudge.metrics.provider import ActivityMetricsProvider

logger = logging.getLogger(__name__)


def load_fixture(path: str | Path) -> tuple[InMemoryEntityDirectory, ActivityMetricsProvider]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Entity fixture not found: {path}")

    with open(path) as fh:
        data = yaml.safe_load(fh) or {}

    directory = InMemoryEntityDirectory()
    provider = ActivityMetricsProvider()
    for raw in data.get("entities", []) or []:
        record: dict[str, Any] = dict(raw)
        activity = record.pop("activity", None)
        entity = directory.add(Entity.model_validate(record))
        if activity is not None:
            provider.record_activity(entity.id, ActivityCounts.model_validate(activity))

    logger.info("Loaded %d entities from %s", directory.count, path)
    return directory, provider
