"""Crop, calibrate and re-label SEM micrographs."""
