"""
imagesolve - RPM dependency resolution for OS image builds

Resolves package sets against RPM repositories using libsolv:
- Per-architecture solver contexts sharing one metadata cache
- Package set chains (e.g. "build" then "os") resolved in order
- Deterministic, fully pinned package specifications
"""

__version__ = "0.3.0"
__author__ = "imagesolve developers"
