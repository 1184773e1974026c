"""
Envelope curves.

An EnvelopeCurve is a reusable, time-relative plan for a parameter: a list
of breakpoints, each reached with linear or exponential interpolation.
Nothing is bound to a clock until ``schedule_onto`` writes the plan into an
AudioParam relative to a note's origin timestamp.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, List, Sequence, Tuple, Union

from .errors import InvalidArgument
from .utils import FLOOR_EPSILON


class CurveType(Enum):
    """Interpolation used to reach a segment's target value."""
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class EnvelopeSegment:
    """One breakpoint: reach ``target_value`` at ``time_offset_sec`` after note start."""
    target_value: float
    time_offset_sec: float
    curve: CurveType = CurveType.LINEAR


PointSpec = Union[EnvelopeSegment, Tuple[float, float], Tuple[float, float, CurveType]]


class EnvelopeCurve:
    """
    Ordered breakpoints for one parameter.

    The first segment is applied as a plain set-at-time; every later one is
    a ramp from the previous breakpoint. Exponential targets below ``floor``
    are clamped up to it, since an exponential ramp can never reach zero.

    Example:
        ```python
        curve = EnvelopeCurve.from_points([
            (0.0, 0.0),
            (1.0, 0.005),
            (0.8, 0.1, CurveType.EXPONENTIAL),
            (0.0, 6.0, CurveType.EXPONENTIAL),   # clamped to 0.001
        ])
        curve.schedule_onto(master.gain, origin)
        ```
    """

    def __init__(self, segments: Iterable[EnvelopeSegment], floor: float = FLOOR_EPSILON):
        if not floor > 0:
            raise InvalidArgument(f"Envelope floor must be > 0, got {floor}")
        self.floor = floor

        cleaned: List[EnvelopeSegment] = []
        for segment in segments:
            if not isinstance(segment, EnvelopeSegment):
                raise InvalidArgument(f"Expected EnvelopeSegment, got {segment!r}")
            if not (math.isfinite(segment.target_value) and math.isfinite(segment.time_offset_sec)):
                raise InvalidArgument(f"Envelope values must be finite: {segment!r}")
            if segment.time_offset_sec < 0:
                raise InvalidArgument(f"Envelope offsets must be >= 0: {segment!r}")
            if cleaned and segment.time_offset_sec <= cleaned[-1].time_offset_sec:
                raise InvalidArgument(
                    "Envelope segments must be strictly time-ordered: "
                    f"{segment.time_offset_sec} follows {cleaned[-1].time_offset_sec}"
                )
            if segment.curve is CurveType.EXPONENTIAL and segment.target_value < floor:
                segment = EnvelopeSegment(floor, segment.time_offset_sec, segment.curve)
            cleaned.append(segment)

        if not cleaned:
            raise InvalidArgument("Envelope needs at least one segment")
        self._segments: Tuple[EnvelopeSegment, ...] = tuple(cleaned)

    @classmethod
    def from_points(cls, points: Sequence[PointSpec], floor: float = FLOOR_EPSILON) -> "EnvelopeCurve":
        """Build a curve from ``(value, offset)`` / ``(value, offset, curve)`` tuples."""
        segments = []
        for point in points:
            if isinstance(point, EnvelopeSegment):
                segments.append(point)
            else:
                segments.append(EnvelopeSegment(*point))
        return cls(segments, floor=floor)

    def __len__(self) -> int:
        return len(self._segments)

    def __iter__(self):
        return iter(self._segments)

    def __repr__(self) -> str:
        points = ", ".join(
            f"{s.target_value:g}@{s.time_offset_sec:g}{'e' if s.curve is CurveType.EXPONENTIAL else ''}"
            for s in self._segments
        )
        return f"EnvelopeCurve([{points}])"

    @property
    def segments(self) -> Tuple[EnvelopeSegment, ...]:
        return self._segments

    @property
    def start_time(self) -> float:
        return self._segments[0].time_offset_sec

    @property
    def end_time(self) -> float:
        return self._segments[-1].time_offset_sec

    @property
    def peak(self) -> float:
        return max(s.target_value for s in self._segments)

    def value_at(self, offset: float) -> float:
        """Closed-form value of the curve ``offset`` seconds after note start."""
        first = self._segments[0]
        if offset < first.time_offset_sec:
            return 0.0
        prev = first
        for segment in self._segments[1:]:
            if offset < segment.time_offset_sec:
                frac = (offset - prev.time_offset_sec) / (segment.time_offset_sec - prev.time_offset_sec)
                if segment.curve is CurveType.LINEAR:
                    return prev.target_value + (segment.target_value - prev.target_value) * frac
                if prev.target_value <= 0:
                    return prev.target_value
                return prev.target_value * (segment.target_value / prev.target_value) ** frac
            prev = segment
        return prev.target_value

    def schedule_onto(self, param, origin: float) -> List[Tuple[str, float, float]]:
        """
        Write this curve into ``param`` relative to ``origin``.

        ``param`` is anything with the AudioParam scheduling methods.

        Returns:
            The emitted instructions as ``(method, value, absolute_time)``
            tuples, in emission order
        """
        emitted: List[Tuple[str, float, float]] = []
        first, rest = self._segments[0], self._segments[1:]

        at = origin + first.time_offset_sec
        param.set_value_at_time(first.target_value, at)
        emitted.append(("set_value_at_time", first.target_value, at))

        for segment in rest:
            at = origin + segment.time_offset_sec
            if segment.curve is CurveType.EXPONENTIAL:
                param.exponential_ramp_to_value_at_time(segment.target_value, at)
                emitted.append(("exponential_ramp_to_value_at_time", segment.target_value, at))
            else:
                param.linear_ramp_to_value_at_time(segment.target_value, at)
                emitted.append(("linear_ramp_to_value_at_time", segment.target_value, at))

        return emitted


def adsr_curve(
    peak: float,
    attack: float,
    decays: Sequence[Tuple[float, float]],
    release_time: float,
    floor: float = FLOOR_EPSILON,
) -> EnvelopeCurve:
    """
    Piano-style curve: 0 → linear attack to ``peak`` → exponential decays → floor.

    Args:
        peak: Value reached at the end of the attack
        attack: Attack time in seconds
        decays: ``(fraction_of_peak, offset)`` pairs for the exponential decays
        release_time: Offset at which the curve reaches ``floor``
    """
    points: List[PointSpec] = [(0.0, 0.0), (peak, attack, CurveType.LINEAR)]
    points.extend((peak * fraction, offset, CurveType.EXPONENTIAL) for fraction, offset in decays)
    points.append((floor, release_time, CurveType.EXPONENTIAL))
    return EnvelopeCurve.from_points(points, floor=floor)
