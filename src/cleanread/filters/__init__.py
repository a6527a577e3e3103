"""Document-level filters applied before content selection."""

from cleanread.filters.noise_filter import NOISE_SELECTORS, NoiseFilter
from cleanread.filters.paragraph_optimizer import ParagraphOptimizer

__all__ = ["NOISE_SELECTORS", "NoiseFilter", "ParagraphOptimizer"]
