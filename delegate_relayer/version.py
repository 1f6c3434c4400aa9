"""
Version information for the delegate relayer.
"""
import importlib.metadata
import pathlib

import tomli

try:
    __version__ = importlib.metadata.version("delegate-relayer")
except importlib.metadata.PackageNotFoundError:
    # Running from a source checkout: read pyproject.toml
    try:
        path = pathlib.Path(__file__).parent.parent / "pyproject.toml"
        with open(path, "rb") as f:
            __version__ = tomli.load(f)["project"]["version"]
    except (FileNotFoundError, KeyError, tomli.TOMLDecodeError):
        __version__ = "0.0.0"
