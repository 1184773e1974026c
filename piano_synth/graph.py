"""
Audio Rendering Graph

A small offline signal graph with schedulable parameters, modelled on the
node/param split of browser audio APIs:

- AudioParam: a value with a time-ordered automation list
  (set-at-time, linear ramp, exponential ramp)
- OscillatorNode: sine generator with frequency + detune params
- GainNode: amplitude control
- BiquadFilterNode: RBJ-cookbook low/high-pass with automatable cutoff
- RenderContext: owns the clock, the destination node and the output sink

All automation is open-loop: it is written once into the params and then
evaluated in bulk by numpy when the context renders a time span. Filters
re-read their cutoff once per render quantum (128 frames) and carry their
state between quanta with ``scipy.signal.lfilter``.
"""

from __future__ import annotations

import bisect
import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable, List, Optional, Tuple

import numpy as np
from scipy.signal import lfilter

from .errors import InvalidArgument, InvalidState
from .utils import RENDER_QUANTUM, SAMPLE_RATE, cents_to_ratio

logger = logging.getLogger(__name__)


# =============================================================================
# AUTOMATION
# =============================================================================

class AutomationKind(Enum):
    """How a parameter reaches an automation event's value."""
    SET = "set"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


@dataclass(frozen=True)
class AutomationEvent:
    """One scheduled change of an AudioParam."""
    kind: AutomationKind
    time: float
    value: float


class AudioParam:
    """
    Schedulable control value.

    Events are kept sorted by time. A ramp runs from the previous event's
    (time, value) to its own; before the first event the param holds its
    default value.
    """

    def __init__(
        self,
        name: str,
        default_value: float,
        min_value: float = -np.inf,
        max_value: float = np.inf,
    ):
        self.name = name
        self.default_value = float(default_value)
        self.min_value = min_value
        self.max_value = max_value
        self._events: List[AutomationEvent] = []
        self._times: List[float] = []

    def __repr__(self) -> str:
        return f"AudioParam({self.name!r}, default={self.default_value}, events={len(self._events)})"

    @property
    def events(self) -> Tuple[AutomationEvent, ...]:
        return tuple(self._events)

    @property
    def has_automation(self) -> bool:
        return bool(self._events)

    def _insert(self, event: AutomationEvent) -> "AudioParam":
        if not np.isfinite(event.time) or event.time < 0:
            raise InvalidArgument(f"{self.name}: event time must be >= 0, got {event.time}")
        if not np.isfinite(event.value):
            raise InvalidArgument(f"{self.name}: event value must be finite, got {event.value}")
        # Equal times keep insertion order
        idx = bisect.bisect_right(self._times, event.time)
        self._times.insert(idx, event.time)
        self._events.insert(idx, event)
        return self

    def set_value_at_time(self, value: float, start_time: float) -> "AudioParam":
        return self._insert(AutomationEvent(AutomationKind.SET, float(start_time), float(value)))

    def linear_ramp_to_value_at_time(self, value: float, end_time: float) -> "AudioParam":
        return self._insert(AutomationEvent(AutomationKind.LINEAR, float(end_time), float(value)))

    def exponential_ramp_to_value_at_time(self, value: float, end_time: float) -> "AudioParam":
        if value <= 0:
            raise InvalidArgument(
                f"{self.name}: exponential ramp target must be > 0, got {value}"
            )
        return self._insert(AutomationEvent(AutomationKind.EXPONENTIAL, float(end_time), float(value)))

    def values(self, times: np.ndarray) -> np.ndarray:
        """Evaluate the automation at each time in ``times`` (seconds)."""
        times = np.asarray(times, dtype=np.float64)
        out = np.full(times.shape, self.default_value, dtype=np.float64)

        prev_time = 0.0
        prev_value = self.default_value
        for event in self._events:
            if event.kind is AutomationKind.SET:
                out[times >= event.time] = event.value
            else:
                span = event.time - prev_time
                in_ramp = (times >= prev_time) & (times < event.time)
                if span > 0 and np.any(in_ramp):
                    frac = (times[in_ramp] - prev_time) / span
                    if event.kind is AutomationKind.LINEAR:
                        out[in_ramp] = prev_value + (event.value - prev_value) * frac
                    elif prev_value * event.value > 0:
                        out[in_ramp] = prev_value * (event.value / prev_value) ** frac
                    else:
                        # Exponential ramps cannot leave zero; hold until the end time
                        out[in_ramp] = prev_value
                out[times >= event.time] = event.value
            prev_time, prev_value = event.time, event.value

        return np.clip(out, self.min_value, self.max_value)

    def value_at(self, t: float) -> float:
        return float(self.values(np.array([t]))[0])


# =============================================================================
# NODES
# =============================================================================

class AudioNode:
    """Base node: fan-in of sources, one processed output."""

    def __init__(self, context: "RenderContext"):
        self.context = context
        self._inputs: List[AudioNode] = []
        self._outputs: List[AudioNode] = []
        self._released = False
        context._register(self)

    @property
    def released(self) -> bool:
        return self._released

    def connect(self, destination: "AudioNode") -> "AudioNode":
        """Route this node's output into ``destination``; returns ``destination``."""
        if destination.context is not self.context:
            raise InvalidArgument("Cannot connect nodes from different render contexts")
        if self._released or destination._released:
            raise InvalidState("Cannot connect a released node")
        destination._inputs.append(self)
        self._outputs.append(destination)
        return destination

    def disconnect(self) -> None:
        for destination in self._outputs:
            if self in destination._inputs:
                destination._inputs.remove(self)
        self._outputs.clear()

    def release(self) -> None:
        """Disconnect and mark the node unusable."""
        self.disconnect()
        self._released = True

    def _mix_inputs(self, times: np.ndarray) -> np.ndarray:
        out = np.zeros(times.shape, dtype=np.float64)
        for source in self._inputs:
            out += source.process(times)
        return out

    def process(self, times: np.ndarray) -> np.ndarray:
        return self._mix_inputs(times)


class OscillatorNode(AudioNode):
    """
    Sine tone generator.

    Frequency and detune (cents) are both AudioParams; phase accumulates
    only while the oscillator is between its start and stop times, so a
    generator started at ``t0`` always has zero phase at ``t0``.
    """

    def __init__(
        self,
        context: "RenderContext",
        frequency: float = 440.0,
        detune: float = 0.0,
    ):
        super().__init__(context)
        nyquist = context.sample_rate / 2
        self.frequency = AudioParam("frequency", frequency, -nyquist, nyquist)
        self.detune = AudioParam("detune", detune)
        self.start_time: Optional[float] = None
        self.stop_time: Optional[float] = None
        self._phase = 0.0

    @property
    def started(self) -> bool:
        return self.start_time is not None

    def start(self, when: Optional[float] = None) -> None:
        if self._released:
            raise InvalidState("Oscillator has been released")
        if self.started:
            raise InvalidState("Oscillator can only be started once")
        self.start_time = self.context.current_time if when is None else float(when)

    def stop(self, when: Optional[float] = None) -> None:
        if not self.started:
            raise InvalidState("Oscillator was never started")
        when = self.context.current_time if when is None else float(when)
        when = max(when, self.start_time)
        if self.stop_time is None or when < self.stop_time:
            self.stop_time = when

    def process(self, times: np.ndarray) -> np.ndarray:
        if not self.started or self._released or times.size == 0:
            return np.zeros(times.shape, dtype=np.float64)

        active = times >= self.start_time
        if self.stop_time is not None:
            active &= times < self.stop_time

        freq = self.frequency.values(times) * cents_to_ratio(self.detune.values(times))
        increment = 2 * np.pi * freq / self.context.sample_rate * active
        phase = self._phase + np.cumsum(increment) - increment
        self._phase = float((phase[-1] + increment[-1]) % (2 * np.pi))

        return np.sin(phase) * active


class GainNode(AudioNode):
    """Amplitude control: output = sum(inputs) * gain(t)."""

    def __init__(self, context: "RenderContext", gain: float = 1.0):
        super().__init__(context)
        self.gain = AudioParam("gain", gain)

    def process(self, times: np.ndarray) -> np.ndarray:
        return self._mix_inputs(times) * self.gain.values(times)


class FilterType(Enum):
    """Biquad response types."""
    LOWPASS = "lowpass"
    HIGHPASS = "highpass"


def calculate_biquad_coefficients(
    filter_type: FilterType,
    frequency: float,
    sample_rate: float,
    q: float = 1.0,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Biquad coefficients from the RBJ Audio EQ Cookbook.

    Returns:
        b, a: ``[b0, b1, b2]`` and ``[1, a1, a2]`` normalised by a0
    """
    nyquist = sample_rate / 2
    frequency = float(np.clip(frequency, 1.0, nyquist * 0.99))

    w0 = 2 * np.pi * frequency / sample_rate
    cos_w0 = np.cos(w0)
    alpha = np.sin(w0) / (2 * max(q, 0.001))

    if filter_type is FilterType.LOWPASS:
        b0 = (1 - cos_w0) / 2
        b1 = 1 - cos_w0
        b2 = (1 - cos_w0) / 2
    elif filter_type is FilterType.HIGHPASS:
        b0 = (1 + cos_w0) / 2
        b1 = -(1 + cos_w0)
        b2 = (1 + cos_w0) / 2
    else:
        raise InvalidArgument(f"Unknown filter type: {filter_type}")

    a0 = 1 + alpha
    a1 = -2 * cos_w0
    a2 = 1 - alpha

    b = np.array([b0 / a0, b1 / a0, b2 / a0])
    a = np.array([1.0, a1 / a0, a2 / a0])
    return b, a


class BiquadFilterNode(AudioNode):
    """
    Second-order filter with automatable cutoff and Q.

    Coefficients are recomputed at the start of each render quantum from
    the current param values; the filter state carries across quanta and
    across render calls.
    """

    def __init__(
        self,
        context: "RenderContext",
        type: FilterType = FilterType.LOWPASS,  # noqa: A002
        frequency: float = 350.0,
        Q: float = 1.0,  # noqa: N803
    ):
        super().__init__(context)
        self.type = FilterType(type)
        nyquist = context.sample_rate / 2
        self.frequency = AudioParam("frequency", frequency, 0.0, nyquist)
        self.Q = AudioParam("Q", Q, 0.0001)
        self._zi = np.zeros(2)

    def coefficients_at(self, t: float) -> Tuple[np.ndarray, np.ndarray]:
        return calculate_biquad_coefficients(
            self.type,
            self.frequency.value_at(t),
            self.context.sample_rate,
            self.Q.value_at(t),
        )

    def process(self, times: np.ndarray) -> np.ndarray:
        x = self._mix_inputs(times)
        if x.size == 0 or self._released:
            return x

        quantum = self.context.render_quantum
        if not (self.frequency.has_automation or self.Q.has_automation):
            b, a = self.coefficients_at(float(times[0]))
            y, self._zi = lfilter(b, a, x, zi=self._zi)
            return y

        # One coefficient set per quantum, sampled at the quantum's first frame
        starts = np.arange(0, x.size, quantum)
        cutoffs = self.frequency.values(times[starts])
        qs = self.Q.values(times[starts])
        y = np.empty_like(x)
        for start, cutoff, q in zip(starts, cutoffs, qs):
            end = min(start + quantum, x.size)
            b, a = calculate_biquad_coefficients(
                self.type, cutoff, self.context.sample_rate, q
            )
            y[start:end], self._zi = lfilter(b, a, x[start:end], zi=self._zi)
        return y


class DestinationNode(AudioNode):
    """Final summing point of a context; feeds the sink."""
    pass


# =============================================================================
# CONTEXT
# =============================================================================

class ContextState(Enum):
    RUNNING = "running"
    CLOSED = "closed"


class RenderContext:
    """
    Owns one signal graph, its clock and its output sink.

    A context is an exclusive resource: the code that creates it is the
    only writer of its params and is responsible for closing it. It is a
    context manager so construction code can guarantee the close on
    every error path.

    Example:
        ```python
        with RenderContext(sample_rate=48000) as ctx:
            osc = OscillatorNode(ctx, frequency=440.0)
            osc.connect(ctx.destination)
            osc.start(0.0)
            audio = ctx.render(0.0, 1.0)
        ```
    """

    def __init__(
        self,
        sample_rate: int = SAMPLE_RATE,
        sink=None,
        clock: Callable[[], float] = time.monotonic,
        render_quantum: int = RENDER_QUANTUM,
    ):
        if not isinstance(sample_rate, int) or sample_rate <= 0:
            raise InvalidArgument(f"Sample rate must be a positive integer, got {sample_rate!r}")
        if render_quantum < 1:
            raise InvalidArgument("Render quantum must be >= 1")

        # Imported here to keep graph importable without the sink backends
        from .sinks import NullSink

        self.sample_rate = sample_rate
        self.render_quantum = render_quantum
        self.sink = sink if sink is not None else NullSink()
        self._clock = clock
        self._epoch = clock()
        self._nodes: List[AudioNode] = []
        self.state = ContextState.RUNNING
        self.destination = DestinationNode(self)

    def __enter__(self) -> "RenderContext":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    @property
    def current_time(self) -> float:
        """Seconds since the context was created."""
        return self._clock() - self._epoch

    @property
    def closed(self) -> bool:
        return self.state is ContextState.CLOSED

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    def _register(self, node: AudioNode) -> None:
        if self.state is ContextState.CLOSED:
            raise InvalidState("Render context is closed")
        self._nodes.append(node)

    def render(self, start_time: float, duration: float) -> np.ndarray:
        """Render ``duration`` seconds of the destination starting at ``start_time``."""
        if self.closed:
            raise InvalidState("Render context is closed")
        frames = int(round(duration * self.sample_rate))
        if frames <= 0:
            return np.zeros(0, dtype=np.float32)
        times = start_time + np.arange(frames) / self.sample_rate
        return self.destination.process(times).astype(np.float32)

    def play(self, start_time: float, duration: float) -> np.ndarray:
        """Render a span and hand it to the sink; returns the rendered audio."""
        audio = self.render(start_time, duration)
        self.sink.write(audio, self.sample_rate, start_time)
        logger.debug(
            "Rendered %d frames (%.3fs) from t=%.3f to %s",
            audio.size, duration, start_time, self.sink.name,
        )
        return audio

    def close(self) -> None:
        """Release every node and the sink. Safe to call more than once."""
        if self.closed:
            return
        self.state = ContextState.CLOSED
        try:
            for node in self._nodes:
                node.release()
            self._nodes.clear()
        finally:
            self.sink.close()
        logger.debug("Render context closed")
