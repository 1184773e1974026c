"""Tests for partial voices and their decay envelopes."""
import pytest

from piano_synth.errors import InvalidArgument, InvalidState
from piano_synth.harmonics import HarmonicSeriesModel, Partial
from piano_synth.utils import FLOOR_EPSILON
from piano_synth.voice import DEFAULT_DECAY_PROFILE, DecayProfile, PartialVoice, decay_rate


class TestDecayRate:

    def test_fundamental_rate(self):
        assert decay_rate(0) == 1.0

    def test_grows_with_index(self):
        rates = [decay_rate(i) for i in range(8)]
        assert rates[2] == pytest.approx(1.6)
        assert all(b > a for a, b in zip(rates, rates[1:]))

    def test_negative_index_rejected(self):
        with pytest.raises(InvalidArgument):
            decay_rate(-1)


class TestDecayProfile:
    """Per-partial envelope shapes."""

    def test_fundamental_envelope(self):
        curve = DEFAULT_DECAY_PROFILE.envelope(peak=0.15, index=0)

        assert [s.time_offset_sec for s in curve] == pytest.approx([0.0, 0.01, 0.1, 1.0, 3.0, 5.0])
        assert [s.target_value for s in curve] == pytest.approx(
            [0.0, 0.15, 0.075, 0.045, 0.0225, FLOOR_EPSILON]
        )

    def test_attack_is_shared(self):
        for index in range(8):
            curve = DEFAULT_DECAY_PROFILE.envelope(peak=0.1, index=index)
            assert curve.segments[1].time_offset_sec == pytest.approx(0.01)
            assert curve.segments[1].target_value == pytest.approx(0.1)

    def test_higher_partials_reach_floor_earlier(self):
        ends = [DEFAULT_DECAY_PROFILE.envelope(0.1, i).end_time for i in range(8)]

        assert ends[0] == pytest.approx(5.0)
        assert all(b < a for a, b in zip(ends, ends[1:]))

    def test_higher_partials_relatively_quieter_mid_note(self):
        """At the same moment, higher partials are further into their decay."""
        levels = [DEFAULT_DECAY_PROFILE.envelope(1.0, i).value_at(1.0) for i in range(8)]
        assert all(b < a for a, b in zip(levels, levels[1:]))

    def test_time_scale(self):
        assert DEFAULT_DECAY_PROFILE.time_scale(0) == 1.0
        assert DEFAULT_DECAY_PROFILE.time_scale(3) == pytest.approx(1.9)

    def test_mismatched_lengths_rejected(self):
        with pytest.raises(InvalidArgument):
            DecayProfile(fractions=(0.5,), offsets=(0.1, 1.0))

    def test_unordered_offsets_rejected(self):
        with pytest.raises(InvalidArgument):
            DecayProfile(offsets=(0.1, 3.0, 1.0))


class TestPartialVoice:
    """Voice construction and lifecycle."""

    def _partials(self):
        return HarmonicSeriesModel().generate(440.0)

    def test_peak_is_ratio_times_scale(self, null_context):
        voice = PartialVoice.create(self._partials()[1], 0.15, 1, null_context)

        assert voice.envelope.peak == pytest.approx(0.8 * 0.15)
        assert voice.oscillator.frequency.default_value == 880.0
        assert voice.oscillator.detune.default_value == 2.0

    def test_schedule_writes_gain_and_detune(self, null_context):
        voice = PartialVoice.create(self._partials()[2], 0.15, 2, null_context)
        voice.schedule(origin=0.5)

        gain_events = voice.amplitude.gain.events
        assert gain_events[0].time == 0.5
        assert gain_events[0].value == 0.0
        assert len(gain_events) == len(voice.envelope)
        assert voice.oscillator.detune.events[0].value == 4.0

    def test_explicit_envelope_overrides_profile(self, null_context):
        from piano_synth.session import SIMPLE_TONE_ENVELOPE

        voice = PartialVoice.create(Partial(440.0, 1.0, 0.0), 1.0, 0, null_context,
                                    envelope=SIMPLE_TONE_ENVELOPE)
        assert voice.envelope is SIMPLE_TONE_ENVELOPE

    def test_invalid_scale(self, null_context):
        with pytest.raises(InvalidArgument):
            PartialVoice.create(self._partials()[0], 0.0, 0, null_context)

    def test_stop_is_idempotent(self, null_context):
        voice = PartialVoice.create(self._partials()[0], 0.15, 0, null_context)
        voice.start(0.0)
        voice.stop()
        voice.stop()

        assert voice.stopped
        assert voice.oscillator.released
        assert voice.amplitude.released

    def test_stop_without_start(self, null_context):
        voice = PartialVoice.create(self._partials()[0], 0.15, 0, null_context)
        voice.stop()
        assert voice.stopped

    def test_restart_after_stop_rejected(self, null_context):
        voice = PartialVoice.create(self._partials()[0], 0.15, 0, null_context)
        voice.start(0.0)
        voice.stop()

        with pytest.raises(InvalidState):
            voice.start(1.0)
