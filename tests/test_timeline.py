import typing

import pytest

import spiralcanon.exceptions
import spiralcanon.form
import spiralcanon.note
import spiralcanon.timeline


def _note (start: float, pitch: int = 60, voice_id: str = "v") -> spiralcanon.note.NoteEvent:

	return spiralcanon.note.NoteEvent(voice_id=voice_id, pitch=pitch, start_time=start, duration=1.0, velocity=90)


def test_section_offsets () -> None:

	assert spiralcanon.form.section_offsets([32, 32, 32]) == [0.0, 32.0, 64.0]
	assert spiralcanon.form.section_offsets([8, 16, 4]) == [0.0, 8.0, 24.0]

	with pytest.raises(spiralcanon.exceptions.ConfigurationError):
		spiralcanon.form.section_offsets([8, 0])


def test_compose_shifts_sections_by_preceding_durations () -> None:

	"""Events at section time 0 land at 0, 32 and 64."""

	sections = [{"v": [_note(0.0), _note(1.0, 62)]}, {"v": [_note(0.0)]}, {"v": [_note(0.0, 64)]}]

	timelines = spiralcanon.timeline.TimelineCompositor().compose(sections, [32, 32, 32])
	timeline = timelines["v"]

	assert [(event.start_time, event.pitch) for event in timeline] == [(0.0, 60), (1.0, 62), (32.0, 60), (64.0, 64)]
	assert timeline.section_offsets == (0.0, 32.0, 64.0)
	assert timeline.section_counts == (2, 1, 1)
	assert [event.start_time for event in timeline.section_events(1)] == [32.0]


def test_compose_keeps_everything_but_start_time () -> None:

	event = spiralcanon.note.NoteEvent(voice_id="v", pitch=55, start_time=3.5, duration=2.25, velocity=101)

	timeline = spiralcanon.timeline.TimelineCompositor().compose([{"v": []}, {"v": [event]}], [16, 16])["v"]
	moved = timeline.events[0]

	assert (moved.pitch, moved.duration, moved.velocity) == (55, 2.25, 101)
	assert moved.start_time == 19.5


def test_compose_keeps_off_grid_start_times () -> None:

	timeline = spiralcanon.timeline.TimelineCompositor().compose([{"v": [_note(0.001)]}, {"v": []}], [32, 32])["v"]

	assert timeline.events[0].start_time == 0.001

	shifted = spiralcanon.timeline.TimelineCompositor().compose([{"v": []}, {"v": [_note(0.001)]}], [32, 32])["v"]

	assert shifted.events[0].start_time == 0.001 + 32.0


def test_close_start_times_stay_distinct () -> None:

	timeline = spiralcanon.timeline.TimelineCompositor().compose([{"v": [_note(0.0), _note(0.0005)]}], [32])["v"]

	assert [event.start_time for event in timeline] == [0.0, 0.0005]


def test_compose_handles_several_voices_and_missing_sections () -> None:

	sections: typing.List[spiralcanon.timeline.SectionEvents] = [
		{"a": [_note(0.0, voice_id="a")]},
		{"a": [_note(1.0, voice_id="a")], "b": [_note(2.0, voice_id="b")]},
	]

	timelines = spiralcanon.timeline.TimelineCompositor().compose(sections, [8, 8])

	assert list(timelines) == ["a", "b"]
	assert timelines["a"].keys() == [("a", 0.0, 60), ("a", 9.0, 60)]
	assert timelines["b"].keys() == [("b", 10.0, 60)]
	assert timelines["b"].section_counts == (0, 1)


def test_duplicate_key_across_sections_is_rejected () -> None:

	"""A note sustained past a boundary must not be re-emitted by the next section."""

	sections = [{"v": [_note(8.0)]}, {"v": [_note(0.0)]}]

	with pytest.raises(spiralcanon.exceptions.CompositionIntegrityError) as info:
		spiralcanon.timeline.TimelineCompositor().compose(sections, [8, 8])

	assert info.value.voice_id == "v"
	assert info.value.section_index == 1
	assert info.value.event_index == 0


def test_duplicate_key_within_section_is_rejected () -> None:

	with pytest.raises(spiralcanon.exceptions.CompositionIntegrityError):
		spiralcanon.timeline.TimelineCompositor().compose([{"v": [_note(1.0), _note(1.0)]}], [8])


def test_same_start_different_pitch_is_fine () -> None:

	timeline = spiralcanon.timeline.TimelineCompositor().compose([{"v": [_note(1.0, 60), _note(1.0, 64)]}], [8])["v"]

	assert len(timeline) == 2


def test_backwards_start_times_are_rejected () -> None:

	with pytest.raises(spiralcanon.exceptions.CompositionIntegrityError) as info:
		spiralcanon.timeline.TimelineCompositor().compose([{"v": [_note(2.0), _note(1.0)]}], [8])

	assert info.value.event_index == 1


def test_wrong_voice_is_rejected () -> None:

	with pytest.raises(spiralcanon.exceptions.CompositionIntegrityError):
		spiralcanon.timeline.TimelineCompositor().compose([{"v": [_note(0.0, voice_id="other")]}], [8])


def test_mismatched_durations_are_rejected () -> None:

	with pytest.raises(spiralcanon.exceptions.ConfigurationError):
		spiralcanon.timeline.TimelineCompositor().compose([{"v": []}], [8, 8])


def test_end_time () -> None:

	timeline = spiralcanon.timeline.TimelineCompositor().compose([{"v": [_note(0.0)]}, {"v": [_note(7.5)]}], [8, 8])["v"]

	assert timeline.end_time == 16.5
	assert spiralcanon.timeline.Timeline(voice_id="empty", events=()).end_time == 0.0
