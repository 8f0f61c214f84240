"""PINPOINT — point inspection core for layered web maps.

Location codes, layer value presentation, spatial feature lookup and
cancellable per-location content resolution.
"""

__version__ = "0.1.0"
