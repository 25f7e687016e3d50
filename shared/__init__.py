"""Shared package for ShiftTrack: models, utilities, logging and local storage."""

__VERSION__ = "1.0.0"
__API_VERSION__ = "v1"
