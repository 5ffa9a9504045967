"""CHANGESCRIBE — turns branch history into a reviewable pull request."""

from changescribe.identity import __codename__, __tagline__, __version__

__all__ = ["__codename__", "__tagline__", "__version__"]
