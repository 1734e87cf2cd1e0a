class SfxError(Exception):
    """Base class for sfxgen errors."""


# Generation
class SelectionEmpty(SfxError):
    pass


class SizeExceeded(SfxError):
    def __init__(self, total_bytes: int, max_bytes: int):
        super().__init__(
            f"Selection is too large ({total_bytes // (1024 * 1024)} MiB); "
            f"limit is {max_bytes // (1024 * 1024)} MiB (80% of available memory)"
        )
        self.total_bytes = total_bytes
        self.max_bytes = max_bytes


class NoDestination(SfxError):
    pass


# Bundle / cipher
class MalformedBundle(SfxError):
    pass


class MalformedBlob(SfxError):
    pass


class DecryptionFailed(SfxError):
    pass


# Extraction
class InvalidKey(SfxError):
    pass


class UnsafeEntryPath(SfxError):
    pass


class SymlinkLoop(SfxError):
    pass
