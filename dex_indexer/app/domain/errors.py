from __future__ import annotations


class IndexerError(Exception):
    """Base class for all indexer errors."""


class ConfigurationError(IndexerError):
    """Unknown scope, invalid bound or missing wiring. Aborts the invocation."""


class TransportError(IndexerError):
    """
    A chain data request failed at the transport level.

    Data sources raise this instead of returning an empty result, so callers can
    tell "nothing happened in these blocks" apart from "we could not ask".
    """


class DataIntegrityError(IndexerError):
    """An entity the current operation depends on is missing from the store."""


class RangeSplitError(IndexerError):
    """A failing block range can no longer be halved."""
