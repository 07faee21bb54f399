"""regex-anchor - cross-file links from regular expression matches."""

__version__ = "0.1.0"
