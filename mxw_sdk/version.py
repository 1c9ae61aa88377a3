"""
Version of the mxw SDK, as reported in error messages.
"""
import importlib.metadata
import pathlib
import tomli

_DISTRIBUTION = "mxw-sdk"


def _read_version() -> str:
    try:
        return importlib.metadata.version(_DISTRIBUTION)
    except importlib.metadata.PackageNotFoundError:
        pass

    # Source checkout, not installed
    pyproject = pathlib.Path(__file__).resolve().parent.parent / "pyproject.toml"
    try:
        with pyproject.open("rb") as f:
            return tomli.load(f)["project"]["version"]
    except (OSError, KeyError, tomli.TOMLDecodeError):
        return "0.0.0"


__version__ = _read_version()
