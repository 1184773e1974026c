"""
Partial voices: one tone generator plus its amplitude control.

Each voice gets an envelope derived from its partial: a 10ms attack to the
partial's peak, then exponential decays through fixed fractions of that
peak down to the floor. Higher partials run through the same shape faster
(``decay_rate`` grows with the harmonic index), so the bright overtones die
away first and the tone darkens as it rings.
"""

import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from .envelope import EnvelopeCurve, adsr_curve
from .errors import InvalidArgument, InvalidState
from .graph import AudioNode, GainNode, OscillatorNode, RenderContext
from .harmonics import Partial
from .utils import FLOOR_EPSILON

logger = logging.getLogger(__name__)


DECAY_RATE_BASE = 1.0
DECAY_RATE_SLOPE = 0.3


def decay_rate(index: int, base: float = DECAY_RATE_BASE, slope: float = DECAY_RATE_SLOPE) -> float:
    """Relative decay speed of the partial at 0-based ``index`` (fundamental = 0)."""
    if index < 0:
        raise InvalidArgument(f"Harmonic index must be >= 0, got {index}")
    return base + index * slope


@dataclass(frozen=True)
class DecayProfile:
    """
    Shape of a partial's amplitude envelope, timed for the fundamental.

    ``fractions`` and ``offsets`` pair up: the envelope reaches
    ``peak * fractions[i]`` at ``offsets[i]`` seconds, then the floor at
    ``floor_offset``.
    """
    attack: float = 0.01
    fractions: Tuple[float, ...] = (0.5, 0.3, 0.15)
    offsets: Tuple[float, ...] = (0.1, 1.0, 3.0)
    floor_offset: float = 5.0
    rate_base: float = DECAY_RATE_BASE
    rate_slope: float = DECAY_RATE_SLOPE

    def __post_init__(self):
        if len(self.fractions) != len(self.offsets):
            raise InvalidArgument("Decay fractions and offsets must have the same length")
        times = (self.attack,) + tuple(self.offsets) + (self.floor_offset,)
        if self.attack <= 0 or any(b <= a for a, b in zip(times, times[1:])):
            raise InvalidArgument(f"Decay offsets must be strictly increasing after the attack: {times}")
        if self.rate_base <= 0 or self.rate_slope < 0:
            raise InvalidArgument("Decay rate base must be > 0 and slope >= 0")

    def time_scale(self, index: int) -> float:
        """How much faster than the fundamental the partial at ``index`` decays."""
        return (decay_rate(index, self.rate_base, self.rate_slope)
                / decay_rate(0, self.rate_base, self.rate_slope))

    def envelope(self, peak: float, index: int) -> EnvelopeCurve:
        """Envelope for a partial with the given peak and 0-based harmonic index."""
        scale = self.time_scale(index)

        def compress(offset: float) -> float:
            return self.attack + (offset - self.attack) / scale

        return adsr_curve(
            peak=peak,
            attack=self.attack,
            decays=[(f, compress(t)) for f, t in zip(self.fractions, self.offsets)],
            release_time=compress(self.floor_offset),
            floor=FLOOR_EPSILON,
        )


DEFAULT_DECAY_PROFILE = DecayProfile()


class PartialVoice:
    """
    One enveloped, detuned sine generator.

    Lifecycle: created → started once → stopped once. A stopped voice has
    released its generator and cannot be restarted.
    """

    def __init__(
        self,
        partial: Partial,
        harmonic_index: int,
        oscillator: OscillatorNode,
        amplitude: GainNode,
        envelope: EnvelopeCurve,
    ):
        self.partial = partial
        self.harmonic_index = harmonic_index
        self.oscillator = oscillator
        self.amplitude = amplitude
        self.envelope = envelope
        self._stopped = False

    @classmethod
    def create(
        cls,
        partial: Partial,
        global_scale: float,
        harmonic_index: int,
        context: RenderContext,
        profile: Optional[DecayProfile] = None,
        envelope: Optional[EnvelopeCurve] = None,
    ) -> "PartialVoice":
        """
        Build the oscillator/gain pair for ``partial``.

        Args:
            partial: Frequency, amplitude ratio and detune of this voice
            global_scale: Multiplier applied to the amplitude ratio for the peak
            harmonic_index: 0-based position in the series (fundamental = 0)
            context: Render context that will own the nodes
            profile: Envelope shape; defaults to ``DEFAULT_DECAY_PROFILE``
            envelope: Explicit amplitude curve, used as-is instead of the profile
        """
        if not global_scale > 0:
            raise InvalidArgument(f"Global scale must be > 0, got {global_scale}")
        if envelope is None:
            profile = profile or DEFAULT_DECAY_PROFILE
            envelope = profile.envelope(partial.amplitude_ratio * global_scale, harmonic_index)

        oscillator = OscillatorNode(
            context,
            frequency=partial.frequency_hz,
            detune=partial.detune_cents,
        )
        amplitude = GainNode(context, gain=0.0)
        oscillator.connect(amplitude)

        return cls(partial, harmonic_index, oscillator, amplitude, envelope)

    @property
    def output(self) -> AudioNode:
        return self.amplitude

    @property
    def started(self) -> bool:
        return self.oscillator.started

    @property
    def stopped(self) -> bool:
        return self._stopped

    def schedule(self, origin: float) -> None:
        """Write detune and envelope automation relative to ``origin``."""
        self.oscillator.detune.set_value_at_time(self.partial.detune_cents, origin)
        self.envelope.schedule_onto(self.amplitude.gain, origin)

    def start(self, at: float) -> None:
        if self._stopped:
            raise InvalidState("PartialVoice cannot be restarted after stop")
        self.oscillator.start(at)

    def stop(self) -> None:
        """Halt generation now and release the generator. Repeat calls do nothing."""
        if self._stopped:
            return
        self._stopped = True
        if self.oscillator.started and not self.oscillator.released:
            self.oscillator.stop()
        self.oscillator.release()
        self.amplitude.release()
