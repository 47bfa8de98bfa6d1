"""
Exceptions raised by Quire while building a site.

Every error carries the path of the file that caused it, so the CLI can
report the offending source without a traceback.
"""


class QuireError(Exception):
    """Base class for fatal build errors."""

    def __init__(self, message, path=None):
        self.path = str(path) if path is not None else None
        if self.path:
            message = f"{self.path}: {message}"
        super().__init__(message)


class ConfigError(QuireError):
    """The configuration file could not be read or is not a mapping."""


class FrontMatterError(QuireError):
    """A content file has front matter that is not valid YAML."""


class LayoutError(QuireError):
    """A layout template could not be loaded or rendered."""


class UnknownLayoutError(LayoutError):
    """A content file names a layout that does not exist."""


class DuplicateOutputError(QuireError):
    """Two sources would be written to the same output file."""


class AssetError(QuireError):
    """A stylesheet or script cannot be bundled."""


class MissingAssetError(AssetError):
    """An asset entry point, or a file it imports, is missing."""


class ThemeError(QuireError):
    """A stylesheet references a theme token or screen that is not defined."""
