"""Household Checkup: questionnaire progression and scoring for household mental-health checkups."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("household-checkup")
except PackageNotFoundError:  # pragma: no cover
    __version__ = "0.0.0"
__all__ = ["__version__"]
