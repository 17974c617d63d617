"""
Setup script for VidScore.

Kept for tools that still invoke setup.py directly.
All configuration is in pyproject.toml.
"""

from setuptools import setup

if __name__ == "__main__":
    setup()
