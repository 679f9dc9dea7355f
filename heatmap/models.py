"""
Heatmap Data Models - Raw provider payloads and display-ready records.

Raw models mirror the provider's JSON contract. HeatmapAsset and PollState
are immutable: a refresh cycle replaces them wholesale, it never patches
individual fields.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional


class Bias(Enum):
    """Qualitative five-level classification of an asset's total score."""
    VERY_BULLISH = "Very Bullish"
    BULLISH = "Bullish"
    NEUTRAL = "Neutral"
    BEARISH = "Bearish"
    VERY_BEARISH = "Very Bearish"


class PillarType(Enum):
    """Pillar names that map into a display column."""
    SENTIMENT = "sentiment"
    TECHNICAL = "technical"
    ECONOMIC = "economic"

    @classmethod
    def match(cls, name: Any) -> Optional["PillarType"]:
        """Case-insensitive lookup; None for unrecognized names."""
        if not isinstance(name, str):
            return None
        try:
            return cls(name.strip().lower())
        except ValueError:
            return None


class PollPhase(Enum):
    """Lifecycle phase of a polling controller."""
    IDLE = "idle"
    LOADING = "loading"
    READY = "ready"
    ERRORED = "errored"
    STOPPED = "stopped"


# Normalized bucket values, ordered bearish to bullish
SCORE_BUCKETS: tuple[int, ...] = (-2, -1, 0, 1, 2)


# ─────────────────────────────────────────────────────────────
# Raw provider models
# ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class Component:
    """One named sub-indicator within a pillar."""
    key: str
    score: Any

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Component"]:
        """Build from a raw dict; None when key or score is absent."""
        if not isinstance(data, dict):
            return None
        if "key" not in data or "score" not in data:
            return None
        return cls(key=str(data["key"]), score=data["score"])


@dataclass(frozen=True)
class Pillar:
    """One scoring category (sentiment, technical, economic, ...)."""
    name: str
    score: Any = None
    components: list[Component] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Any) -> Optional["Pillar"]:
        """
        Build from a raw dict, tolerating missing sub-structure.

        Returns None when the pillar has no name. A missing or non-list
        ``components`` is treated as empty, and components lacking a key
        or score are skipped.
        """
        if not isinstance(data, dict) or "name" not in data:
            return None

        raw_components = data.get("components")
        if not isinstance(raw_components, (list, tuple)):
            raw_components = []

        components = []
        for item in raw_components:
            component = Component.from_dict(item)
            if component is not None:
                components.append(component)

        return cls(
            name=str(data["name"]),
            score=data.get("score"),
            components=components,
        )


@dataclass(frozen=True)
class HeatmapResponse:
    """
    Validated provider response for a single asset.

    Only the top-level shape is guaranteed (see validation.py). ``pillars``
    holds the raw pillar payloads; their contents are interpreted leniently
    by the transformer.
    """
    asset: str
    score: Any
    scale: tuple[float, float]
    pillars: list[Any]
    as_of: str
    version: str

    @property
    def scale_min(self) -> float:
        return self.scale[0]

    @property
    def scale_max(self) -> float:
        return self.scale[1]

    def iter_pillars(self) -> list[Pillar]:
        """Parse raw pillars, dropping the ones without a name."""
        parsed = []
        for raw in self.pillars:
            pillar = Pillar.from_dict(raw)
            if pillar is not None:
                parsed.append(pillar)
        return parsed

    def to_payload(self) -> dict[str, Any]:
        """Wire-format representation."""
        return {
            "asset": self.asset,
            "score": self.score,
            "scale": list(self.scale),
            "pillars": self.pillars,
            "as_of": self.as_of,
            "version": self.version,
        }

    def to_dict(self) -> dict[str, Any]:
        return self.to_payload()


# ─────────────────────────────────────────────────────────────
# Display models
# ─────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class HeatmapAsset:
    """
    Display-ready record derived from one HeatmapResponse.

    ``score`` is the provider's raw total, never normalized. Every value in
    the three pillar maps is one of SCORE_BUCKETS. The maps are read-only
    views, so a published snapshot cannot be changed through them.
    """
    asset: str
    bias: Bias
    score: Any
    sentiment: Mapping[str, int]
    technical: Mapping[str, int]
    economic: Mapping[str, int]
    last_updated: datetime

    def __post_init__(self) -> None:
        # Pillar maps are copied and exposed read-only
        for name in ("sentiment", "technical", "economic"):
            object.__setattr__(self, name, MappingProxyType(dict(getattr(self, name))))

    def pillar(self, pillar_type: PillarType) -> Mapping[str, int]:
        """Get the bucket map for a pillar type."""
        return {
            PillarType.SENTIMENT: self.sentiment,
            PillarType.TECHNICAL: self.technical,
            PillarType.ECONOMIC: self.economic,
        }[pillar_type]

    def to_dict(self) -> dict[str, Any]:
        return {
            "asset": self.asset,
            "bias": self.bias.value,
            "score": self.score,
            "sentiment": dict(self.sentiment),
            "technical": dict(self.technical),
            "economic": dict(self.economic),
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass(frozen=True)
class PollState:
    """
    Snapshot of a polling controller's view state.

    ``data`` only ever contains assets whose most recent fetch succeeded.
    """
    data: tuple[HeatmapAsset, ...] = ()
    loading: bool = False
    error: Optional[str] = None
    last_updated: Optional[datetime] = None
    phase: PollPhase = PollPhase.IDLE

    @property
    def assets(self) -> list[str]:
        return [item.asset for item in self.data]

    def get(self, asset: str) -> Optional[HeatmapAsset]:
        """Look up one asset by symbol."""
        for item in self.data:
            if item.asset == asset:
                return item
        return None

    def to_dict(self) -> dict[str, Any]:
        return {
            "data": [item.to_dict() for item in self.data],
            "loading": self.loading,
            "error": self.error,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "phase": self.phase.value,
        }
