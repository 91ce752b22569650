"""Errors raised while building the generator graph or generating secrets."""


class ConfigError(Exception):
    """Configuration error exception."""
    pass


class GenerationError(Exception):
    """Base class for fatal secret generation errors."""
    pass


class ConfigurationConflict(GenerationError):
    """Two hosts declare the same storage path with different generator scripts."""
    pass


class UnresolvableDependency(GenerationError):
    """A dependency references a secret that no host generates."""
    pass


class CyclicDependency(GenerationError):
    """The generator dependency graph contains a cycle."""

    def __init__(self, cycle):
        self.cycle = list(cycle)
        super().__init__(f"Cyclic dependency between generated secrets: {' -> '.join(self.cycle)}")


class GeneratorFailure(GenerationError):
    """A generator command exited with a non-zero status."""
    pass


class EncryptionFailure(GenerationError):
    pass


class DecryptionFailure(GenerationError):
    pass


class PersistFailure(GenerationError):
    pass


class VCSStageFailure(GenerationError):
    pass


class UnknownTarget(GenerationError):
    """A requested path matches no known generated secret."""
    pass


class MissingRootMarker(GenerationError):
    """The command was not run from the configuration root."""
    pass
