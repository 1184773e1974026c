"""
Harmonic Series Model

Turns a fundamental frequency into the ordered list of partials that make
up a piano-like additive tone. Real piano strings are slightly stiff, so
their overtones run a little sharp of the ideal integer multiples; the
model approximates that with a detune that grows with harmonic number.

The amplitude and detune rules are plain functions with their default
parameters set to the classic hand-tuned values, so the model stays
data-driven without changing the default sound.
"""

from dataclasses import dataclass
from typing import List, Sequence

from .errors import InvalidArgument
from .utils import DEFAULT_HARMONIC_COUNT, is_positive_finite


# Amplitude ratios for partials 1..8 (fundamental first)
AMPLITUDE_TABLE = (1.0, 0.8, 0.6, 0.5, 0.4, 0.3, 0.25, 0.2)

# Ratio applied per partial beyond the end of the table
AMPLITUDE_TAIL_FALLOFF = 0.8

DETUNE_STEP_CENTS = 2.0


@dataclass(frozen=True)
class Partial:
    """One sine component of a harmonic series."""
    frequency_hz: float
    amplitude_ratio: float  # (0, 1]
    detune_cents: float


def amplitude_ratio(
    k: int,
    table: Sequence[float] = AMPLITUDE_TABLE,
    falloff: float = AMPLITUDE_TAIL_FALLOFF,
) -> float:
    """
    Amplitude ratio of the k-th partial (1-indexed).

    Follows ``table`` for the first ``len(table)`` partials, then keeps
    shrinking geometrically so the sequence stays strictly decreasing.
    """
    if k < 1:
        raise InvalidArgument(f"Harmonic index must be >= 1, got {k}")
    if k <= len(table):
        return float(table[k - 1])
    return float(table[-1]) * falloff ** (k - len(table))


def detune_cents(k: int, step: float = DETUNE_STEP_CENTS) -> float:
    """Detune of the k-th partial in cents: ``step`` per index above the fundamental."""
    if k < 1:
        raise InvalidArgument(f"Harmonic index must be >= 1, got {k}")
    return (k - 1) * step


class HarmonicSeriesModel:
    """
    Pure generator of piano partials.

    Example:
        ```python
        partials = HarmonicSeriesModel().generate(440.0)
        partials[1].frequency_hz   # 880.0
        partials[1].detune_cents   # 2.0
        ```
    """

    def __init__(
        self,
        amplitude_table: Sequence[float] = AMPLITUDE_TABLE,
        tail_falloff: float = AMPLITUDE_TAIL_FALLOFF,
        detune_step: float = DETUNE_STEP_CENTS,
    ):
        ratios = list(amplitude_table)
        if not ratios:
            raise InvalidArgument("Amplitude table must not be empty")
        if any(not (0.0 < r <= 1.0) for r in ratios):
            raise InvalidArgument("Amplitude ratios must lie in (0, 1]")
        if any(b >= a for a, b in zip(ratios, ratios[1:])):
            raise InvalidArgument("Amplitude table must be strictly decreasing")
        if not (0.0 < tail_falloff < 1.0):
            raise InvalidArgument("Tail falloff must lie in (0, 1)")
        if detune_step < 0:
            raise InvalidArgument("Detune step must be non-negative")

        self.amplitude_table = tuple(ratios)
        self.tail_falloff = tail_falloff
        self.detune_step = detune_step

    def generate(
        self,
        fundamental_hz: float,
        harmonic_count: int = DEFAULT_HARMONIC_COUNT,
    ) -> List[Partial]:
        """
        Build the partial list for one note.

        Args:
            fundamental_hz: Fundamental frequency in Hz (> 0)
            harmonic_count: Number of partials to generate (>= 1)

        Returns:
            Partials ordered by harmonic number, fundamental first

        Raises:
            InvalidArgument: On a non-positive fundamental or count
        """
        if not is_positive_finite(fundamental_hz):
            raise InvalidArgument(
                f"Fundamental frequency must be > 0 Hz, got {fundamental_hz!r}"
            )
        if isinstance(harmonic_count, bool) or not isinstance(harmonic_count, int) \
                or harmonic_count < 1:
            raise InvalidArgument(
                f"Harmonic count must be an integer >= 1, got {harmonic_count!r}"
            )

        return [
            Partial(
                frequency_hz=fundamental_hz * k,
                amplitude_ratio=amplitude_ratio(k, self.amplitude_table, self.tail_falloff),
                detune_cents=detune_cents(k, self.detune_step),
            )
            for k in range(1, harmonic_count + 1)
        ]
