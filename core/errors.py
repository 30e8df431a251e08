class ParticleUniverseError(Exception):
    """Base class for all errors raised by the particle pipeline."""


class UnknownTemplate(ParticleUniverseError, KeyError):
    """Requested template key is not in the shape registry."""

    def __init__(self, name: str) -> None:
        super().__init__(name)
        self.name = name

    def __str__(self) -> str:
        return f"unknown template: {self.name!r}"


class MalformedObservation(ParticleUniverseError, ValueError):
    """A hand landmark set is incomplete or holds non-finite values."""
