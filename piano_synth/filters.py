"""
Filter chain for the summed partials.

High-pass (fixed 80 Hz, Q 0.5) removes rumble; low-pass (3 kHz, Q 1)
follows a falling cutoff curve so the note loses brightness as it decays.
"""

import logging
from typing import Optional

from .envelope import CurveType, EnvelopeCurve
from .errors import InvalidArgument, InvalidState
from .graph import AudioNode, BiquadFilterNode, FilterType, RenderContext

logger = logging.getLogger(__name__)


HIGHPASS_CUTOFF = 80.0
HIGHPASS_Q = 0.5
LOWPASS_CUTOFF = 3000.0
LOWPASS_Q = 1.0

# Perceptual darkening of a decaying piano string
LOWPASS_CUTOFF_CURVE = EnvelopeCurve.from_points([
    (3000.0, 0.0),
    (2000.0, 0.5, CurveType.EXPONENTIAL),
    (1200.0, 3.0, CurveType.EXPONENTIAL),
    (800.0, 5.0, CurveType.EXPONENTIAL),
])


class FilterChain:
    """
    High-pass stage feeding a low-pass stage with an automated cutoff.

    ``connect_input`` accepts any number of sources (they are summed at
    the high-pass input); ``output`` is the low-pass node.
    """

    def __init__(self, highpass: BiquadFilterNode, lowpass: BiquadFilterNode, cutoff_curve: EnvelopeCurve):
        self.highpass = highpass
        self.lowpass = lowpass
        self.cutoff_curve = cutoff_curve
        self._released = False

    @classmethod
    def create(
        cls,
        context: RenderContext,
        highpass_cutoff: float = HIGHPASS_CUTOFF,
        highpass_q: float = HIGHPASS_Q,
        lowpass_cutoff: float = LOWPASS_CUTOFF,
        lowpass_q: float = LOWPASS_Q,
        cutoff_curve: Optional[EnvelopeCurve] = None,
    ) -> "FilterChain":
        for label, value in (
            ("high-pass cutoff", highpass_cutoff),
            ("high-pass Q", highpass_q),
            ("low-pass cutoff", lowpass_cutoff),
            ("low-pass Q", lowpass_q),
        ):
            if not value > 0:
                raise InvalidArgument(f"{label} must be > 0, got {value}")
        nyquist = context.sample_rate / 2
        if highpass_cutoff >= nyquist or lowpass_cutoff >= nyquist:
            raise InvalidArgument(f"Filter cutoffs must be below Nyquist ({nyquist} Hz)")

        highpass = BiquadFilterNode(context, FilterType.HIGHPASS, highpass_cutoff, highpass_q)
        lowpass = BiquadFilterNode(context, FilterType.LOWPASS, lowpass_cutoff, lowpass_q)
        highpass.connect(lowpass)

        curve = cutoff_curve if cutoff_curve is not None else LOWPASS_CUTOFF_CURVE
        return cls(highpass, lowpass, curve)

    def connect_input(self, source: AudioNode) -> None:
        if self._released:
            raise InvalidState("FilterChain has been released")
        source.connect(self.highpass)

    def output(self) -> AudioNode:
        return self.lowpass

    def schedule(self, origin: float) -> None:
        """Write the low-pass cutoff curve relative to ``origin``."""
        self.cutoff_curve.schedule_onto(self.lowpass.frequency, origin)

    def release(self) -> None:
        if self._released:
            return
        self._released = True
        self.highpass.release()
        self.lowpass.release()
