"""pawmatch: AI enrichment and recommendation core for adoptable-pet listings."""

from pawmatch.version import __version__

__all__ = ["__version__"]
