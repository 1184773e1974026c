"""
Engine entry points.

``create_note`` plays a full additive piano note; ``play_note`` plays the
lightweight single-sine variant. Both return the note's completion future,
so callers can either fire and forget or block on ``.result()`` until the
note has released its resources.
"""

import logging
from concurrent.futures import Future
from typing import Any, Optional

from .config_loader import SynthConfig, get_config_loader
from .session import NoteSession, SimpleToneSession

logger = logging.getLogger(__name__)


_default_config: Optional[SynthConfig] = None


def get_default_config() -> SynthConfig:
    """Engine defaults, read once from ``piano_synth/configs/piano.yaml`` when present."""
    global _default_config
    if _default_config is None:
        _default_config = get_config_loader().load_or_default()
    return _default_config


def set_default_config(config: Optional[SynthConfig]) -> None:
    """Replace the engine defaults (``None`` re-reads the preset on next use)."""
    global _default_config
    _default_config = config


def _session_kwargs(config: Optional[SynthConfig], overrides: dict) -> dict:
    kwargs = (config or get_default_config()).session_kwargs()
    kwargs.update(overrides)
    return kwargs


def create_session(
    fundamental_hz: float,
    config: Optional[SynthConfig] = None,
    **overrides: Any,
) -> NoteSession:
    """Build (but do not start) a full piano NoteSession."""
    return NoteSession(fundamental_hz, **_session_kwargs(config, overrides))


def create_note(
    fundamental_hz: float,
    config: Optional[SynthConfig] = None,
    **overrides: Any,
) -> Future:
    """
    Start a piano note and return its completion signal.

    Args:
        fundamental_hz: Note frequency in Hz
        config: Engine defaults; the shared preset when omitted
        **overrides: Any ``NoteSession`` keyword argument

    Returns:
        Future resolving with ``None`` once the note has been torn down

    Raises:
        InvalidArgument: Before anything sounds, on a bad frequency or option
    """
    session = create_session(fundamental_hz, config, **overrides)
    logger.debug("Triggering piano note at %.2fHz", fundamental_hz)
    return session.start()


def play_note(
    fundamental_hz: float,
    config: Optional[SynthConfig] = None,
    **overrides: Any,
) -> Future:
    """
    Start a single-sine note (no harmonics, no filter) and return its completion.

    Only the sample rate and output settings are taken from ``config``;
    the tone has its own short envelope and lifetime.
    """
    base = config or get_default_config()
    kwargs = {
        "sample_rate": base.sample_rate,
        "sink_kind": base.sink,
        "output_dir": base.output_dir,
        "device": base.device,
    }
    kwargs.update(overrides)
    session = SimpleToneSession(fundamental_hz, **kwargs)
    logger.debug("Triggering simple tone at %.2fHz", fundamental_hz)
    return session.start()
