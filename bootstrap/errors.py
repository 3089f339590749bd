class BootstrapError(Exception):
    """Base class for bootstrap file errors. Carries the file offset and/or block height involved."""

    def __init__(self, message: str, *, offset: int | None = None, height: int | None = None):
        self.offset = offset
        self.height = height

        context = []
        if height is not None:
            context.append(f"height {height}")
        if offset is not None:
            context.append(f"offset {offset}")
        if context:
            message = f"{message} ({', '.join(context)})"
        super().__init__(message)


class FormatError(BootstrapError):
    """Bad magic or unexpected header shape"""


class VersionError(BootstrapError):
    """Unsupported major file version"""


class CorruptionError(BootstrapError):
    """Garbage inside a chunk, a length that overruns its container, or a truncated chunk"""


class HeightOrderError(BootstrapError):
    """A block was appended out of height order"""


class ResolutionError(BootstrapError):
    """The chain store could not produce a requested block or transaction"""


class BootstrapIOError(BootstrapError):
    """Create/open/write/flush failure on the bootstrap file"""


class CreateError(BootstrapIOError):
    pass


class OpenError(BootstrapIOError):
    pass
