"""
Note sequencing.

NoteScheduler triggers notes one after another with caller-chosen gaps.
Notes may overlap: each trigger creates its own session, and the scheduler
only waits for the next onset, not for the note to finish. Onsets are timed
against the first trigger, so time spent inside a trigger does not stretch
the gaps that follow it.
"""

import logging
import time
from concurrent.futures import Future, wait as wait_futures
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Union

from .engine import create_note
from .errors import InvalidArgument
from .utils import PianoNotes, delay, is_positive_finite, note_frequency

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScheduledNote:
    """One step of a sequence: play ``fundamental_hz``, then wait ``delay_after`` seconds."""
    fundamental_hz: float
    delay_after: float = 0.0
    label: str = ""


NoteTrigger = Callable[[float], Future]


class NoteScheduler:
    """
    Sequences note triggers with fixed delays.

    Example:
        ```python
        scheduler = NoteScheduler()
        scheduler.add("A4", 0.2).add("E4", 0.8).add("C4")
        completions = scheduler.run(wait=True)
        ```

    Args:
        trigger: Callable that starts a note and returns its completion;
            ``create_note`` by default
        sleep: Blocking sleep used between triggers
        clock: Monotonic clock the onset deadlines are measured on
    """

    def __init__(
        self,
        trigger: Optional[NoteTrigger] = None,
        sleep: Callable[[float], None] = delay,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.trigger = trigger or create_note
        self.sleep = sleep
        self.clock = clock
        self.steps: List[ScheduledNote] = []

    def __len__(self) -> int:
        return len(self.steps)

    def add(
        self,
        note: Union[str, float],
        delay_after: float = 0.0,
        label: Optional[str] = None,
    ) -> "NoteScheduler":
        """
        Append a note; ``note`` is a symbol (``"A4"``, ``"C"``) or a frequency in Hz.

        Raises:
            InvalidArgument: On an unknown symbol, bad frequency or negative delay
        """
        if isinstance(note, str):
            try:
                frequency = note_frequency(note)
            except KeyError as e:
                raise InvalidArgument(str(e.args[0])) from e
            default_label = note.strip().upper()
        else:
            frequency = note
            default_label = f"{frequency:.2f}Hz" if is_positive_finite(frequency) else str(frequency)

        if not is_positive_finite(frequency):
            raise InvalidArgument(f"Fundamental frequency must be > 0 Hz, got {frequency!r}")
        if delay_after < 0:
            raise InvalidArgument(f"Delay must be >= 0 s, got {delay_after}")

        self.steps.append(ScheduledNote(float(frequency), float(delay_after), label or default_label))
        return self

    def extend(self, steps: Sequence[ScheduledNote]) -> "NoteScheduler":
        for step in steps:
            self.add(step.fundamental_hz, step.delay_after, step.label or None)
        return self

    @property
    def span(self) -> float:
        """Seconds from the first trigger to the last."""
        return sum(step.delay_after for step in self.steps[:-1])

    def run(self, wait: bool = False, timeout: Optional[float] = None) -> List[Future]:
        """
        Trigger every note in order.

        Args:
            wait: Also block until every note has completed
            timeout: Upper bound for that wait, in seconds

        Returns:
            Completion futures, one per note, in trigger order
        """
        completions: List[Future] = []
        logger.info("Starting piano sequence (%d notes)", len(self.steps))

        first_onset = self.clock()
        offset = 0.0

        for i, step in enumerate(self.steps):
            if i > 0:
                remaining = first_onset + offset - self.clock()
                if remaining > 0:
                    self.sleep(remaining)
            logger.debug("Sequence step %d: %s at +%.3fs", i, step.label or step.fundamental_hz, offset)
            completions.append(self.trigger(step.fundamental_hz))
            offset += step.delay_after

        logger.info("Sequence complete!")

        if wait and completions:
            done, not_done = wait_futures(completions, timeout=timeout)
            if not_done:
                logger.warning("%d notes still sounding after %.1fs", len(not_done), timeout or 0.0)
            for future in done:
                # Surface teardown errors to the caller
                future.result()

        return completions


# A4, +200ms, E4, +800ms, C4
DEMO_SEQUENCE = (
    ScheduledNote(PianoNotes.A4, 0.2, "A4"),
    ScheduledNote(PianoNotes.E4, 0.8, "E4"),
    ScheduledNote(PianoNotes.C4, 0.0, "C4"),
)


def demo_scheduler(trigger: Optional[NoteTrigger] = None, **kwargs) -> NoteScheduler:
    """Scheduler preloaded with the three-note demo sequence."""
    return NoteScheduler(trigger=trigger, **kwargs).extend(DEMO_SEQUENCE)
