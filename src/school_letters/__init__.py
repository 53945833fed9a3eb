"""Per-school measles risk letters: simulation, rendering and highlighting."""

__version__ = "0.1.0"
