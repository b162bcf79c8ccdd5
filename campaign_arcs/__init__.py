"""Story-arc progression gating and narrative consistency scoring for campaigns."""

__version__ = "0.1.0"
