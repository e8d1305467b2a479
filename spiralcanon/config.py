"""Settings for a generation run, loaded from YAML.

A config file mirrors the fields of :class:`Settings`, grouped by concern::

    composition:
      tempo: 72
      tonic: 60
    spiral:
      scale: 1.0
      golden_direction: contract
    dispatch:
      batch_size: 30
      call_timeout: 10.0
      max_attempts: 5
      base_delay: 0.1
      max_delay: 5.0
      jitter: 0.25
    sequencer:
      backend: mcp
      host: 127.0.0.1
      port: 9877
      output: galaxy.mid

Every key is optional.
"""

import dataclasses
import logging
import os
import typing

import yaml

import spiralcanon.constants
import spiralcanon.dispatcher
import spiralcanon.exceptions


logger = logging.getLogger(__name__)

BACKENDS = ("memory", "mcp", "osc", "midi")


def load_config (config_path: str = 'config.yaml') -> dict:

	"""
	Load configuration from a YAML file.
	"""

	if not os.path.exists(config_path):
		logger.warning(f"Config file {config_path} not found. Using defaults.")
		return {}

	with open(config_path, 'r') as f:
		data = yaml.safe_load(f)

	if data is None:
		return {}

	if not isinstance(data, dict):
		raise spiralcanon.exceptions.ConfigurationError(f"Config file {config_path} must hold a mapping")

	return data


@dataclasses.dataclass(frozen=True)
class Settings:

	"""
	Everything a run needs besides the composition itself.

	``tempo`` of ``None`` keeps the composition's own tempo.  ``port`` of
	``None`` uses the backend's default port.
	"""

	tempo: typing.Optional[float] = None
	tonic: int = spiralcanon.constants.MIDDLE_C

	spiral_scale: float = 1.0
	golden_direction: str = "contract"

	batch_size: int = spiralcanon.dispatcher.DEFAULT_BATCH_SIZE
	call_timeout: float = 10.0
	max_attempts: int = 5
	base_delay: float = 0.1
	max_delay: float = 5.0
	jitter: float = 0.25

	backend: str = "memory"
	host: str = "127.0.0.1"
	port: typing.Optional[int] = None
	output: str = "spiral_galaxy_canon.mid"

	def __post_init__ (self) -> None:

		if self.backend not in BACKENDS:
			raise spiralcanon.exceptions.ConfigurationError(
				f"Unknown backend {self.backend!r} (expected one of {', '.join(BACKENDS)})"
			)

		if self.tempo is not None and self.tempo <= 0:
			raise spiralcanon.exceptions.ConfigurationError(f"Tempo must be positive (got {self.tempo})")

		if self.batch_size < 1:
			raise spiralcanon.exceptions.ConfigurationError(f"Batch size must be at least 1 (got {self.batch_size})")

		if self.call_timeout <= 0:
			raise spiralcanon.exceptions.ConfigurationError("Call timeout must be positive")

		if self.golden_direction not in ("contract", "expand"):
			raise spiralcanon.exceptions.ConfigurationError(
				f"Golden direction must be 'contract' or 'expand' (got {self.golden_direction!r})"
			)

	@classmethod
	def from_dict (cls, data: typing.Mapping[str, typing.Any]) -> "Settings":

		"""Build settings from a loaded config mapping."""

		composition = data.get('composition', {}) or {}
		spiral = data.get('spiral', {}) or {}
		dispatch = data.get('dispatch', {}) or {}
		sequencer = data.get('sequencer', {}) or {}

		defaults = cls()

		try:
			return cls(
				tempo = composition.get('tempo', defaults.tempo),
				tonic = int(composition.get('tonic', defaults.tonic)),
				spiral_scale = float(spiral.get('scale', defaults.spiral_scale)),
				golden_direction = spiral.get('golden_direction', defaults.golden_direction),
				batch_size = int(dispatch.get('batch_size', defaults.batch_size)),
				call_timeout = float(dispatch.get('call_timeout', defaults.call_timeout)),
				max_attempts = int(dispatch.get('max_attempts', defaults.max_attempts)),
				base_delay = float(dispatch.get('base_delay', defaults.base_delay)),
				max_delay = float(dispatch.get('max_delay', defaults.max_delay)),
				jitter = float(dispatch.get('jitter', defaults.jitter)),
				backend = sequencer.get('backend', defaults.backend),
				host = sequencer.get('host', defaults.host),
				port = sequencer.get('port', defaults.port),
				output = sequencer.get('output', defaults.output)
			)

		except (TypeError, AttributeError) as exc:
			raise spiralcanon.exceptions.ConfigurationError(f"Invalid config: {exc}") from exc

	def retry_policy (self) -> spiralcanon.dispatcher.RetryPolicy:

		return spiralcanon.dispatcher.RetryPolicy(
			max_attempts = self.max_attempts,
			base_delay = self.base_delay,
			max_delay = self.max_delay,
			jitter = self.jitter
		)

	def replace (self, **changes: typing.Any) -> "Settings":

		"""Return a copy with ``changes`` applied, skipping ``None`` values."""

		return dataclasses.replace(self, **{key: value for key, value in changes.items() if value is not None})
