"""
Response transformation - HeatmapResponse to display-ready HeatmapAsset.
"""

import logging
import numbers
from datetime import datetime, timezone
from typing import Any

from .exceptions import TransformError
from .models import HeatmapAsset, HeatmapResponse, PillarType
from .normalizer import classify_bias, normalize_score


logger = logging.getLogger(__name__)


def parse_timestamp(value: Any, asset: str = "") -> datetime:
    """
    Parse an ISO-8601 ``as_of`` value into an aware datetime.

    Accepts the forms datetime.fromisoformat takes on Python 3.11+:
    extended and basic format, fractional seconds of any precision, and a
    ``Z`` or numeric offset. Naive values are taken as UTC.

    Raises:
        TransformError: if the value is not a parseable ISO-8601 string
    """
    if not isinstance(value, str) or not value.strip():
        raise TransformError(
            "as_of must be a non-empty ISO-8601 string",
            asset=asset,
            field="as_of",
            raw_value=value,
        )

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise TransformError(
            f"Invalid as_of timestamp: {value}",
            asset=asset,
            field="as_of",
            raw_value=value,
        ) from e

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _require_number(value: Any, asset: str, field: str) -> None:
    if not isinstance(value, numbers.Real) or isinstance(value, bool):
        raise TransformError(
            f"{field} must be numeric",
            asset=asset,
            field=field,
            raw_value=value,
        )


def transform_response(response: HeatmapResponse) -> HeatmapAsset:
    """
    Convert one validated response into a HeatmapAsset.

    Each component is bucketed against the response's own scale and filed
    under its pillar's map (case-insensitive match on the pillar name).
    Pillars with any other name are skipped entirely. Duplicate component
    keys within a pillar are last-write-wins.

    Raises:
        TransformError: on a non-numeric score or unparseable ``as_of``
    """
    asset = str(response.asset)
    maps: dict[PillarType, dict[str, int]] = {
        PillarType.SENTIMENT: {},
        PillarType.TECHNICAL: {},
        PillarType.ECONOMIC: {},
    }

    for pillar in response.iter_pillars():
        pillar_type = PillarType.match(pillar.name)
        if pillar_type is None:
            logger.debug(f"[{asset}] Skipping unrecognized pillar: {pillar.name}")
            continue

        target = maps[pillar_type]
        for component in pillar.components:
            _require_number(
                component.score, asset, f"{pillar.name}.{component.key}"
            )
            target[component.key] = normalize_score(component.score, response.scale)

    _require_number(response.score, asset, "score")

    return HeatmapAsset(
        asset=asset,
        bias=classify_bias(response.score),
        score=response.score,
        sentiment=maps[PillarType.SENTIMENT],
        technical=maps[PillarType.TECHNICAL],
        economic=maps[PillarType.ECONOMIC],
        last_updated=parse_timestamp(response.as_of, asset),
    )
