"""
Structural validation for decoded provider payloads.

Validation is intentionally shallow: it checks the top-level shape only.
Pillar and component contents, and whether scale[0] < scale[1], are left
to the transformer, which treats missing sub-fields as absent.
"""

import numbers
from typing import Any

from .exceptions import ValidationError
from .models import HeatmapResponse


REQUIRED_FIELDS: tuple[str, ...] = ("asset", "score", "scale", "pillars", "as_of", "version")


def _is_number(value: Any) -> bool:
    return isinstance(value, numbers.Real) and not isinstance(value, bool)


def validate_response(data: Any, asset: str = "") -> HeatmapResponse:
    """
    Validate a decoded payload and wrap it in a HeatmapResponse.

    Checks run in order and fail on the first violation:
    1. payload is a JSON object
    2. all REQUIRED_FIELDS are present
    3. ``pillars`` is an array
    4. ``scale`` is an array of exactly two numbers

    Raises:
        ValidationError: describing the first failed check
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid response format", asset=asset)

    for name in REQUIRED_FIELDS:
        if name not in data:
            raise ValidationError(
                f"Missing required field: {name}",
                asset=asset,
                field=name,
            )

    if not isinstance(data["pillars"], (list, tuple)):
        raise ValidationError("Pillars must be an array", asset=asset, field="pillars")

    scale = data["scale"]
    if (
        not isinstance(scale, (list, tuple))
        or len(scale) != 2
        or not all(_is_number(bound) for bound in scale)
    ):
        raise ValidationError(
            "Scale must be a tuple of two numbers",
            asset=asset,
            field="scale",
        )

    return HeatmapResponse(
        asset=data["asset"],
        score=data["score"],
        scale=(scale[0], scale[1]),
        pillars=list(data["pillars"]),
        as_of=data["as_of"],
        version=data["version"],
    )
