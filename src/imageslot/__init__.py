"""
imageslot - Single image slot manager

Resizes and recompresses images and publishes them to one file in a
GitHub Pages repository.
"""

__version__ = "0.1.0"
