"""
Note Session Module

A NoteSession owns the complete signal graph for exactly one note:

    partials → PartialVoices → FilterChain → master gain → destination

Lifecycle:
    IDLE --start()--> SOUNDING --timer / stop()--> RELEASED

``start()`` acquires a fresh RenderContext, builds the graph, writes every
envelope and filter curve against one shared origin timestamp, starts all
generators at that origin, then returns while a background thread renders
the note into the session's sink in chunks. A one-shot timer is armed
against the same origin. When the timer fires (or ``stop()`` is called
early) the session tears the graph down and resolves ``completion``
exactly once.

Sessions never share mutable state with each other, so any number of them
may overlap; each one gets its own context and its own sink.
"""

from __future__ import annotations

import logging
import threading
import time
from concurrent.futures import Future
from contextlib import ExitStack
from enum import Enum
from typing import Callable, List, Optional

from .envelope import CurveType, EnvelopeCurve
from .errors import InvalidArgument, InvalidState
from .filters import FilterChain
from .graph import AudioNode, GainNode, RenderContext
from .harmonics import HarmonicSeriesModel, Partial
from .sinks import AudioSink, make_sink
from .utils import (
    DEFAULT_GLOBAL_SCALE,
    DEFAULT_HARMONIC_COUNT,
    NOTE_DURATION,
    SAMPLE_RATE,
    is_positive_finite,
)
from .voice import DecayProfile, PartialVoice

logger = logging.getLogger(__name__)

# Seconds of audio rendered per sink write
RENDER_CHUNK = 0.25


MASTER_ENVELOPE = EnvelopeCurve.from_points([
    (0.0, 0.0),
    (1.0, 0.005),                         # very quick attack
    (0.8, 0.1, CurveType.EXPONENTIAL),
    (0.6, 1.5, CurveType.EXPONENTIAL),    # extended sustain
    (0.4, 3.0, CurveType.EXPONENTIAL),
    (0.0, 6.0, CurveType.EXPONENTIAL),    # release, clamped to the floor
])


class SessionState(Enum):
    """Lifecycle state of a NoteSession."""
    IDLE = "idle"
    SOUNDING = "sounding"
    RELEASED = "released"


class NoteSession:
    """
    One rendered piano note and everything it owns.

    Example:
        ```python
        session = NoteSession(PianoNotes.A4)
        done = session.start()
        done.result()          # blocks ~7s, until resources are released
        ```

    Args:
        fundamental_hz: Note frequency in Hz
        harmonic_count: Number of partials
        global_scale: Peak scale applied to every partial's amplitude ratio
        total_duration: Seconds from start until automatic teardown
        sample_rate: Render sample rate
        sink: Output sink; one is made from ``sink_kind`` when omitted
        sink_kind: ``null`` / ``wav`` / ``device`` (see ``sinks.make_sink``)
        output_dir: Directory for WAV output
        device: sounddevice output device for the ``device`` sink
        model: Harmonic series model
        decay_profile: Per-partial envelope shape
        master_envelope: Master gain curve
        clock: Monotonic clock used for the render context

    Raises:
        InvalidArgument: Synchronously, before any generator exists
    """

    def __init__(
        self,
        fundamental_hz: float,
        harmonic_count: int = DEFAULT_HARMONIC_COUNT,
        global_scale: float = DEFAULT_GLOBAL_SCALE,
        total_duration: float = NOTE_DURATION,
        sample_rate: int = SAMPLE_RATE,
        sink: Optional[AudioSink] = None,
        sink_kind: str = "null",
        output_dir: Optional[str] = None,
        device=None,
        model: Optional[HarmonicSeriesModel] = None,
        decay_profile: Optional[DecayProfile] = None,
        master_envelope: Optional[EnvelopeCurve] = MASTER_ENVELOPE,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not is_positive_finite(global_scale):
            raise InvalidArgument(f"Global scale must be > 0, got {global_scale!r}")
        if not is_positive_finite(total_duration):
            raise InvalidArgument(f"Total duration must be > 0 s, got {total_duration!r}")

        self.model = model or HarmonicSeriesModel()
        # Validates the fundamental and count before anything is built
        self.partials: List[Partial] = self._make_partials(fundamental_hz, harmonic_count)

        self.fundamental_hz = float(fundamental_hz)
        self.harmonic_count = len(self.partials)
        self.global_scale = global_scale
        self.total_duration = float(total_duration)
        self.sample_rate = sample_rate
        self.decay_profile = decay_profile
        self.master_envelope = master_envelope
        self._sink = sink
        self._sink_kind = sink_kind
        self._output_dir = output_dir
        self._device = device
        self._clock = clock

        self.completion: Future = Future()
        self.completion.set_running_or_notify_cancel()

        self._state = SessionState.IDLE
        self._lock = threading.Lock()
        self._timer: Optional[threading.Timer] = None
        self._context: Optional[RenderContext] = None
        self._render_thread: Optional[threading.Thread] = None
        self._render_error: Optional[BaseException] = None
        self._abort = threading.Event()

        self.voices: List[PartialVoice] = []
        self.filter_chain: Optional[FilterChain] = None
        self.master: Optional[GainNode] = None
        self.origin: Optional[float] = None
        self.started_at: Optional[float] = None
        self.released_at: Optional[float] = None

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}({self.fundamental_hz:.2f}Hz, "
            f"partials={self.harmonic_count}, state={self._state.value})"
        )

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def context(self) -> Optional[RenderContext]:
        return self._context

    @property
    def sink(self) -> Optional[AudioSink]:
        return self._context.sink if self._context is not None else self._sink

    @property
    def label(self) -> str:
        return f"note_{self.fundamental_hz:.2f}Hz"

    # ------------------------------------------------------------------
    # Graph construction (overridable)
    # ------------------------------------------------------------------

    def _make_partials(self, fundamental_hz: float, harmonic_count: int) -> List[Partial]:
        return self.model.generate(fundamental_hz, harmonic_count)

    def _build_graph(self, context: RenderContext) -> AudioNode:
        """Create voices, filter chain and master gain; return the final node."""
        self.voices = [
            PartialVoice.create(partial, self.global_scale, index, context, self.decay_profile)
            for index, partial in enumerate(self.partials)
        ]
        self.filter_chain = FilterChain.create(context)
        for voice in self.voices:
            self.filter_chain.connect_input(voice.output)

        self.master = GainNode(context, gain=0.0 if self.master_envelope else 1.0)
        self.filter_chain.output().connect(self.master)
        return self.master

    def _schedule(self, origin: float) -> None:
        """Write all automation relative to the shared origin."""
        for voice in self.voices:
            voice.schedule(origin)
        if self.filter_chain is not None:
            self.filter_chain.schedule(origin)
        if self.master_envelope is not None and self.master is not None:
            self.master_envelope.schedule_onto(self.master.gain, origin)

    def _clear_graph(self) -> None:
        self.voices = []
        self.filter_chain = None
        self.master = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> Future:
        """
        Build, schedule and start the note.

        Returns:
            The completion future (resolves with ``None`` after teardown)

        Raises:
            InvalidState: If the session was already started
        """
        with self._lock:
            if self._state is not SessionState.IDLE:
                raise InvalidState(f"Cannot start a session that is {self._state.value}")

            sink = self._sink or make_sink(
                self._sink_kind, output_dir=self._output_dir, label=self.label, device=self._device
            )

            with ExitStack() as stack:
                # Closed again on any failure below; kept open on success
                context = stack.enter_context(
                    RenderContext(sample_rate=self.sample_rate, sink=sink, clock=self._clock)
                )
                stack.callback(self._clear_graph)

                origin = context.current_time
                output = self._build_graph(context)
                output.connect(context.destination)
                self._schedule(origin)
                for voice in self.voices:
                    voice.start(origin)

                # Timer measured from the origin so setup time is not added on
                remaining = max(0.0, self.total_duration - (context.current_time - origin))
                timer = threading.Timer(remaining, self._on_timer)
                timer.daemon = True
                timer.name = f"NoteSession-{self.label}"

                render_thread = threading.Thread(
                    target=self._render, args=(context, origin),
                    name=f"NoteRender-{self.label}", daemon=True,
                )

                stack.pop_all()

            self._context = context
            self._timer = timer
            self._render_thread = render_thread
            self.origin = origin
            self.started_at = self._clock()
            self._state = SessionState.SOUNDING
            render_thread.start()
            timer.start()

        logger.debug(
            "Started %s with %d voices (origin=%.4f, duration=%.2fs)",
            self.label, len(self.voices), origin, self.total_duration,
        )
        return self.completion

    def _render(self, context: RenderContext, origin: float) -> None:
        """Render the whole note into the sink, one chunk at a time."""
        total_frames = int(round(self.total_duration * self.sample_rate))
        quantum = context.render_quantum
        chunk_frames = max(1, int(RENDER_CHUNK * self.sample_rate) // quantum) * quantum
        offset = 0
        try:
            while offset < total_frames and not self._abort.is_set():
                frames = min(chunk_frames, total_frames - offset)
                context.play(origin + offset / self.sample_rate, frames / self.sample_rate)
                offset += frames
        except Exception as exc:
            logger.exception("Rendering %s failed", self.label)
            self._render_error = exc

    def _join_render(self) -> None:
        thread = self._render_thread
        if thread is not None and thread is not threading.current_thread():
            thread.join()

    def _on_timer(self) -> None:
        # Natural end: let the render finish before tearing down
        self._join_render()
        self.stop()

    def stop(self) -> None:
        """
        Tear the note down now.

        Called automatically by the timer; callers may use it for early
        termination. Repeat calls on a released session are no-ops.

        Raises:
            InvalidState: If the session was never started
        """
        with self._lock:
            if self._state is SessionState.RELEASED:
                return
            if self._state is SessionState.IDLE:
                raise InvalidState("Cannot stop a session that was never started")
            self._state = SessionState.RELEASED
            timer, self._timer = self._timer, None

        if timer is not None and timer is not threading.current_thread():
            timer.cancel()
        self._abort.set()

        error: Optional[BaseException] = None
        try:
            self._teardown()
        except Exception as exc:
            logger.exception("Teardown of %s failed", self.label)
            error = exc
        finally:
            self.released_at = self._clock()
            error = error or self._render_error
            if error is None:
                logger.info("Piano note at %.2fHz finished", self.fundamental_hz)
                self.completion.set_result(None)
            else:
                self.completion.set_exception(error)

    cancel = stop

    def _teardown(self) -> None:
        try:
            self._join_render()
            for voice in self.voices:
                voice.stop()
            if self.filter_chain is not None:
                self.filter_chain.release()
            if self.master is not None:
                self.master.release()
        finally:
            if self._context is not None:
                self._context.close()

    def wait(self, timeout: Optional[float] = None) -> None:
        """Block until the session has released its resources."""
        self.completion.result(timeout=timeout)


# =============================================================================
# SINGLE-TONE VARIANT
# =============================================================================

SIMPLE_TONE_ENVELOPE = EnvelopeCurve.from_points([
    (0.0, 0.0),
    (0.3, 0.01),
    (0.0, 1.5, CurveType.EXPONENTIAL),
])

SIMPLE_TONE_DURATION = 2.0


class SimpleToneSession(NoteSession):
    """
    Lightweight note: one sine generator, no harmonics, no filter.

    Used by call sites that only need a quick confirmation tone. Shares the
    NoteSession lifecycle and completion guarantees.
    """

    def __init__(
        self,
        fundamental_hz: float,
        total_duration: float = SIMPLE_TONE_DURATION,
        envelope: EnvelopeCurve = SIMPLE_TONE_ENVELOPE,
        **kwargs,
    ):
        kwargs.setdefault("master_envelope", None)
        super().__init__(fundamental_hz, harmonic_count=1, total_duration=total_duration, **kwargs)
        self.envelope = envelope

    def _make_partials(self, fundamental_hz: float, harmonic_count: int) -> List[Partial]:
        if not is_positive_finite(fundamental_hz):
            raise InvalidArgument(
                f"Fundamental frequency must be > 0 Hz, got {fundamental_hz!r}"
            )
        return [Partial(frequency_hz=float(fundamental_hz), amplitude_ratio=1.0, detune_cents=0.0)]

    def _build_graph(self, context: RenderContext) -> AudioNode:
        voice = PartialVoice.create(
            self.partials[0], 1.0, 0, context, envelope=self.envelope
        )
        self.voices = [voice]
        self.master = GainNode(context, gain=1.0)
        voice.output.connect(self.master)
        return self.master
