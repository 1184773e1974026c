"""
Piano Synthesizer

Additive piano-note synthesis: each note is a stack of slightly detuned
sine partials with per-partial decay envelopes, shaped by a filter chain
and a master envelope, rendered offline with numpy and sent to a sink
(memory, WAV file or sound device).
"""

__version__ = "1.0.0"
__author__ = "Piano Synth Team"

from .errors import PianoSynthError, InvalidArgument, InvalidState, ConfigLoadError
from .utils import (
    SAMPLE_RATE,
    FLOOR_EPSILON,
    NOTE_DURATION,
    PianoNotes,
    NOTE_LETTERS,
    note_frequency,
    delay,
)
from .harmonics import Partial, HarmonicSeriesModel
from .envelope import CurveType, EnvelopeSegment, EnvelopeCurve, adsr_curve
from .graph import (
    AudioParam,
    OscillatorNode,
    GainNode,
    BiquadFilterNode,
    FilterType,
    RenderContext,
)
from .sinks import AudioSink, NullSink, WavFileSink, DeviceSink, make_sink
from .voice import DecayProfile, PartialVoice, decay_rate
from .filters import FilterChain
from .session import NoteSession, SimpleToneSession, SessionState, MASTER_ENVELOPE
from .config_loader import SynthConfig, ConfigLoader, get_config_loader
from .engine import create_note, create_session, play_note, get_default_config, set_default_config
from .scheduler import NoteScheduler, ScheduledNote, DEMO_SEQUENCE, demo_scheduler

__all__ = [
    # Errors
    "PianoSynthError",
    "InvalidArgument",
    "InvalidState",
    "ConfigLoadError",
    # Constants / notes
    "SAMPLE_RATE",
    "FLOOR_EPSILON",
    "NOTE_DURATION",
    "PianoNotes",
    "NOTE_LETTERS",
    "note_frequency",
    "delay",
    # Building blocks
    "Partial",
    "HarmonicSeriesModel",
    "CurveType",
    "EnvelopeSegment",
    "EnvelopeCurve",
    "adsr_curve",
    "AudioParam",
    "OscillatorNode",
    "GainNode",
    "BiquadFilterNode",
    "FilterType",
    "RenderContext",
    "AudioSink",
    "NullSink",
    "WavFileSink",
    "DeviceSink",
    "make_sink",
    "DecayProfile",
    "PartialVoice",
    "decay_rate",
    "FilterChain",
    # Sessions and entry points
    "NoteSession",
    "SimpleToneSession",
    "SessionState",
    "MASTER_ENVELOPE",
    "SynthConfig",
    "ConfigLoader",
    "get_config_loader",
    "create_note",
    "create_session",
    "play_note",
    "get_default_config",
    "set_default_config",
    "NoteScheduler",
    "ScheduledNote",
    "DEMO_SEQUENCE",
    "demo_scheduler",
]
