"""deckrefine - iterative quality refinement for generated business presentations"""

__version__ = "0.1.0"
