"""
Utility functions and constants for the piano synthesizer.

Provides:
- Audio constants (sample rate, render quantum, envelope floor)
- Piano note frequency table (4th octave + C5)
- Note symbol lookup for callers that speak in note names
- A blocking delay helper for sequencing notes
"""

import math
import time
from typing import Dict


# =============================================================================
# AUDIO CONSTANTS
# =============================================================================

SAMPLE_RATE = 48000          # Hz
RENDER_QUANTUM = 128         # frames per automation/filter block

# Exponential ramps cannot reach zero; envelopes bottom out here instead.
FLOOR_EPSILON = 0.001

DEFAULT_HARMONIC_COUNT = 8
DEFAULT_GLOBAL_SCALE = 0.15  # per-partial peak scale, keeps the summed stack below 1.0
NOTE_DURATION = 7.0          # seconds; longer than every envelope tail below


# =============================================================================
# NOTE TABLE
# =============================================================================

class PianoNotes:
    """
    Common piano note frequencies in Hz.

    Enum-like class so callers can write ``PianoNotes.A4`` and get a
    plain float back.
    """
    C4 = 261.63  # Middle C
    D4 = 293.66
    E4 = 329.63
    F4 = 349.23
    G4 = 392.00
    A4 = 440.00  # Standard tuning reference
    B4 = 493.88
    C5 = 523.25

    @classmethod
    def as_dict(cls) -> Dict[str, float]:
        """Return the table as ``{symbol: frequency}``."""
        return {
            name: value
            for name, value in vars(cls).items()
            if name[:1].isupper() and isinstance(value, float)
        }


# Single-letter symbols accepted by the HTTP layer, mapped to the 4th octave
NOTE_LETTERS: Dict[str, float] = {
    'C': PianoNotes.C4,
    'D': PianoNotes.D4,
    'E': PianoNotes.E4,
    'F': PianoNotes.F4,
    'G': PianoNotes.G4,
    'A': PianoNotes.A4,
    'B': PianoNotes.B4,
}


def note_frequency(symbol: str) -> float:
    """
    Look up the fundamental frequency for a note symbol.

    Accepts full table names (``"A4"``, ``"C5"``) and bare letters
    (``"A"`` -> A4).

    Raises:
        KeyError: If the symbol is not in the table
    """
    key = symbol.strip().upper()
    if key in NOTE_LETTERS:
        return NOTE_LETTERS[key]
    table = PianoNotes.as_dict()
    if key in table:
        return table[key]
    raise KeyError(f"Unknown note symbol: {symbol!r}")


def cents_to_ratio(cents: float) -> float:
    """Convert a detune in cents to a frequency ratio."""
    return 2.0 ** (cents / 1200.0)


def is_positive_finite(value: float) -> bool:
    try:
        return math.isfinite(value) and value > 0
    except TypeError:
        return False


def delay(seconds: float) -> None:
    """Block the calling thread for ``seconds`` (no-op for non-positive values)."""
    if seconds > 0:
        time.sleep(seconds)
