"""layoutkit - Structure layout reflection and transport datatype synthesis."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("layoutkit")
except PackageNotFoundError:
    __version__ = "(local)"
