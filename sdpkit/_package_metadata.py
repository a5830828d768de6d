from __future__ import annotations

import importlib.metadata as importlib_metadata
import warnings
from email.message import Message
from pathlib import Path
from typing import Any, Callable, Mapping, Sequence

import toml


def _load_metadata() -> Message | Mapping[str, Any] | None:
    # installed distribution metadata first, then the source tree pyproject.toml
    try:
        return importlib_metadata.metadata(__package__ or __name__)  # type: ignore[return-value]
    except importlib_metadata.PackageNotFoundError:
        pass
    package_path = Path(__file__).resolve().parent
    for relpaths in (("..", "pyproject.toml"), ("pyproject.toml",)):
        pyproject_path = Path(package_path, *relpaths)
        if pyproject_path.exists():
            return toml.load(pyproject_path)
    warnings.warn(
        "Didn't find distinfo nor pyproject.toml for package metadata", stacklevel=2
    )
    return None


metadata: Message | Mapping[str, Any] | None = _load_metadata()


def get_metadata(
    distinfo_key: str,
    toml_getter: str | int | Sequence[str | int] | Callable[[Mapping[str, Any]], Any],
) -> Any:
    """
    Get a package metadata value, from the installed distribution or from pyproject.toml.

    :param distinfo_key: the key of the value in the distribution metadata.
    :param toml_getter: the key, path of keys, or getter function for pyproject.toml.
    :return: the metadata value, or None if not available.
    """
    if metadata is None:
        return None
    if not isinstance(metadata, Mapping):
        return metadata.get(distinfo_key)
    try:
        if callable(toml_getter):
            return toml_getter(metadata)
        if isinstance(toml_getter, (list, tuple)):
            value: Any = metadata
            for key in toml_getter:
                value = value[key]
            return value
        return metadata[toml_getter]
    except (KeyError, IndexError):
        return None
