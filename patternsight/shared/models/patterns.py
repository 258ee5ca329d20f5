"""
Pattern, level and overlay data models.

Detected patterns form a closed set of variants (candlestick, confluence,
combination, composite). Every variant shares the trade-level fields and
adds its own strict payload; ``DetectedPattern`` is the union of them.
"""

from dataclasses import dataclass, field, asdict
from typing import Any, ClassVar, Dict, List, Literal, Optional, Tuple, Union

from patternsight.shared.utils.error_policy import InvalidPatternError, enforce_valid_trade_levels


Signal = Literal['Bullish', 'Bearish', 'Neutral']
Confidence = Literal['Low', 'Medium', 'High']
LevelKind = Literal['Support', 'Resistance']
OverlayType = Literal['box', 'line', 'icon', 'arrow']

SIGNALS: Tuple[str, ...] = ('Bullish', 'Bearish', 'Neutral')


@dataclass(frozen=True)
class Level:
    """A support or resistance price level built from clustered extrema."""

    price: float
    kind: LevelKind
    strength: int  # Touch count
    first_index: int
    last_index: int

    def __post_init__(self):
        if self.kind not in ('Support', 'Resistance'):
            raise ValueError(f"Level kind must be Support or Resistance, got {self.kind}")
        if self.strength < 1:
            raise ValueError(f"Level strength must be >= 1, got {self.strength}")
        if self.first_index > self.last_index:
            raise ValueError(
                f"Level first_index ({self.first_index}) cannot exceed last_index ({self.last_index})"
            )

    def __repr__(self):
        return f"{self.kind}: {self.price:.4f} (x{self.strength})"

    def distance_pct(self, price: float) -> float:
        """Relative distance of a price from this level."""
        return abs(price - self.price) / self.price if self.price else float('inf')

    def to_dict(self) -> Dict[str, Any]:
        return {
            'price': self.price,
            'kind': self.kind,
            'strength': self.strength,
            'firstIndex': self.first_index,
            'lastIndex': self.last_index,
        }


@dataclass
class PatternBase:
    """
    Fields shared by every detected pattern.

    risk_reward is derived at construction from the trade levels:
    |target - entry| / |entry - stop|.
    """
    kind: ClassVar[str] = 'pattern'

    name: str
    code: str
    signal: Signal
    confidence: Confidence
    probability: float
    start_index: int
    end_index: int
    entry_price: float
    target_price: float
    stop_loss: float
    evidence: List[str]
    confirmation: List[str]
    risk_reward: float = field(init=False)

    def __post_init__(self):
        if self.signal not in SIGNALS:
            raise InvalidPatternError(f"{self.name}: unknown signal '{self.signal}'")
        if self.confidence not in ('Low', 'Medium', 'High'):
            raise InvalidPatternError(f"{self.name}: unknown confidence '{self.confidence}'")
        if not 0 <= self.probability <= 100:
            raise InvalidPatternError(f"{self.name}: probability must be 0-100, got {self.probability}")
        if self.start_index < 0 or self.start_index > self.end_index:
            raise InvalidPatternError(
                f"{self.name}: invalid index span {self.start_index}..{self.end_index}"
            )
        self.risk_reward = enforce_valid_trade_levels(
            self.signal, self.entry_price, self.target_price, self.stop_loss, name=self.name
        )

    @property
    def is_bullish(self) -> bool:
        return self.signal == 'Bullish'

    @property
    def is_bearish(self) -> bool:
        return self.signal == 'Bearish'

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for API responses."""
        data = {
            'kind': self.kind,
            'name': self.name,
            'code': self.code,
            'signal': self.signal,
            'confidence': self.confidence,
            'probability': self.probability,
            'startIndex': self.start_index,
            'endIndex': self.end_index,
            'entryPrice': self.entry_price,
            'targetPrice': self.target_price,
            'stopLoss': self.stop_loss,
            'riskReward': self.risk_reward,
            'evidence': list(self.evidence),
            'confirmation': list(self.confirmation),
        }
        data.update(self._payload())
        return data

    def _payload(self) -> Dict[str, Any]:
        return {}


@dataclass
class CandlestickPattern(PatternBase):
    """Single- or multi-bar candle shape."""
    kind: ClassVar[str] = 'candlestick'


@dataclass
class ConfluencePattern(PatternBase):
    """Candlestick shape confirmed by a nearby level of matching bias."""
    kind: ClassVar[str] = 'confluence'

    base_pattern: str = ''
    level_price: float = 0.0
    level_kind: LevelKind = 'Support'

    def _payload(self) -> Dict[str, Any]:
        return {
            'basePattern': self.base_pattern,
            'levelPrice': self.level_price,
            'levelKind': self.level_kind,
        }


@dataclass
class CombinationPattern(PatternBase):
    """Cross-indicator signal or multi-bar structure."""
    kind: ClassVar[str] = 'combination'

    indicators: Tuple[str, ...] = ()

    def _payload(self) -> Dict[str, Any]:
        return {'indicators': list(self.indicators)}


@dataclass
class CompositePattern(PatternBase):
    """Strategy signal where every sub-condition held on the same bar."""
    kind: ClassVar[str] = 'composite'

    strategy: Literal['swing', 'intraday'] = 'swing'
    conditions: Dict[str, bool] = field(default_factory=dict)

    def __post_init__(self):
        super().__post_init__()
        failed = [name for name, held in self.conditions.items() if not held]
        if failed:
            raise InvalidPatternError(f"{self.name}: composite built with failed conditions {failed}")

    def _payload(self) -> Dict[str, Any]:
        return {'strategy': self.strategy, 'conditions': dict(self.conditions)}


DetectedPattern = Union[CandlestickPattern, ConfluencePattern, CombinationPattern, CompositePattern]


@dataclass(frozen=True)
class Overlay:
    """
    Renderer-agnostic chart primitive.

    Coordinates are chart coordinates: x is a bar index (fractional for
    midpoints and label shifts), y is a price.
    """
    type: OverlayType
    start_x: float
    start_y: float
    color: str
    end_x: Optional[float] = None
    end_y: Optional[float] = None
    label: Optional[str] = None
    code: Optional[str] = None
    stroke_width: float = 1.0
    dashed: bool = False

    def __post_init__(self):
        if self.type not in ('box', 'line', 'icon', 'arrow'):
            raise ValueError(f"Unknown overlay type '{self.type}'")

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            'type': data['type'],
            'startX': data['start_x'],
            'startY': data['start_y'],
            'endX': data['end_x'],
            'endY': data['end_y'],
            'color': data['color'],
            'label': data['label'],
            'code': data['code'],
            'strokeWidth': data['stroke_width'],
            'dashed': data['dashed'],
        }
