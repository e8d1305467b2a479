import os
import tempfile

import pytest

import spiralcanon.__main__
import spiralcanon.backends.ableton_mcp
import spiralcanon.backends.memory
import spiralcanon.backends.midi_file
import spiralcanon.backends.osc
import spiralcanon.config
import spiralcanon.exceptions


def _write (directory: str, text: str) -> str:

	path = os.path.join(directory, "config.yaml")

	with open(path, "w") as f:
		f.write(text)

	return path


def test_missing_file_uses_defaults () -> None:

	with tempfile.TemporaryDirectory() as directory:
		data = spiralcanon.config.load_config(os.path.join(directory, "absent.yaml"))

	assert data == {}
	assert spiralcanon.config.Settings.from_dict(data) == spiralcanon.config.Settings()


def test_empty_file_uses_defaults () -> None:

	with tempfile.TemporaryDirectory() as directory:
		assert spiralcanon.config.load_config(_write(directory, "")) == {}


def test_load_grouped_settings () -> None:

	text = """
composition:
  tempo: 90
  tonic: 62
spiral:
  scale: 2.0
  golden_direction: expand
dispatch:
  batch_size: 12
  max_attempts: 3
  jitter: 0.0
sequencer:
  backend: midi
  output: out.mid
"""

	with tempfile.TemporaryDirectory() as directory:
		settings = spiralcanon.config.Settings.from_dict(spiralcanon.config.load_config(_write(directory, text)))

	assert settings.tempo == 90
	assert settings.tonic == 62
	assert settings.spiral_scale == 2.0
	assert settings.golden_direction == "expand"
	assert settings.batch_size == 12
	assert settings.backend == "midi"
	assert settings.output == "out.mid"

	policy = settings.retry_policy()

	assert policy.max_attempts == 3
	assert policy.jitter == 0.0
	assert policy.base_delay == 0.1


def test_non_mapping_file_is_rejected () -> None:

	with tempfile.TemporaryDirectory() as directory:
		path = _write(directory, "- just\n- a list\n")

		with pytest.raises(spiralcanon.exceptions.ConfigurationError):
			spiralcanon.config.load_config(path)


@pytest.mark.parametrize("changes", [
	{"backend": "cassette"},
	{"tempo": 0},
	{"batch_size": 0},
	{"call_timeout": -1.0},
	{"golden_direction": "sideways"},
])
def test_invalid_settings (changes: dict) -> None:

	with pytest.raises(spiralcanon.exceptions.ConfigurationError):
		spiralcanon.config.Settings(**changes)


def test_replace_skips_unset_values () -> None:

	settings = spiralcanon.config.Settings(backend="mcp", port=9000)
	updated = settings.replace(backend=None, host="10.0.0.2", port=None)

	assert updated.backend == "mcp"
	assert updated.host == "10.0.0.2"
	assert updated.port == 9000


@pytest.mark.parametrize("backend, kind", [
	("memory", spiralcanon.backends.memory.InMemorySequencer),
	("mcp", spiralcanon.backends.ableton_mcp.AbletonMcpSequencer),
	("osc", spiralcanon.backends.osc.AbletonOscSequencer),
	("midi", spiralcanon.backends.midi_file.MidiFileSequencer),
])
def test_make_sequencer (backend: str, kind: type) -> None:

	assert isinstance(spiralcanon.__main__.make_sequencer(spiralcanon.config.Settings(backend=backend)), kind)


def test_parse_args () -> None:

	args = spiralcanon.__main__.parse_args(["--backend", "midi", "--output", "x.mid", "--no-play", "-v"])

	assert args.backend == "midi"
	assert args.output == "x.mid"
	assert args.no_play
	assert args.verbose
	assert args.config == "config.yaml"


def test_main_renders_a_midi_file () -> None:

	with tempfile.TemporaryDirectory() as directory:

		output = os.path.join(directory, "galaxy.mid")
		config = os.path.join(directory, "absent.yaml")

		status = spiralcanon.__main__.main(["--config", config, "--backend", "midi", "--output", output])

		assert status == 0
		assert os.path.exists(output)


def test_main_rejects_bad_settings () -> None:

	with tempfile.TemporaryDirectory() as directory:
		assert spiralcanon.__main__.main(["--config", os.path.join(directory, "absent.yaml"), "--tempo", "-5"]) == 2
