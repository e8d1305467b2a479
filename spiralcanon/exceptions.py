"""Error taxonomy shared by generation and dispatch.

Generation errors (``ConfigurationError``, ``CompositionIntegrityError``) are
fatal for the voice or section they concern and are raised before anything is
sent to the host.  Sequencer errors (``RetryableError``, ``FatalError``) come
from the external sequencer and are handled at batch granularity by
:class:`~spiralcanon.dispatcher.BatchedDispatcher`.
"""

import typing


class SpiralCanonError (Exception):

	"""Base class for every error raised by spiralcanon."""


class ConfigurationError (SpiralCanonError, ValueError):

	"""Invalid spiral, canonic, section or runtime parameters."""


class CompositionIntegrityError (SpiralCanonError):

	"""
	A generated timeline breaks its own invariants.

	Raised by the compositor when two events of one voice share
	``(start_time, pitch)`` or when start times go backwards inside a section.
	This always indicates a generator defect and is never retried.
	"""

	def __init__ (
		self,
		message: str,
		voice_id: typing.Optional[str] = None,
		section_index: typing.Optional[int] = None,
		event_index: typing.Optional[int] = None
	) -> None:

		super().__init__(message)

		self.voice_id = voice_id
		self.section_index = section_index
		self.event_index = event_index


class SequencerError (SpiralCanonError):

	"""Base class for failures reported by the external sequencer."""


class RetryableError (SequencerError):

	"""A transient failure (timeout, dropped connection, busy host)."""


class FatalError (SequencerError):

	"""A failure that retrying will not fix (missing instrument, bad track)."""
