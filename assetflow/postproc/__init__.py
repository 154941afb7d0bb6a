"""CSS post-processing steps."""

from .autoprefix import Autoprefixer
from .chain import PostProcessorChain, minify_css

__all__ = ["Autoprefixer", "PostProcessorChain", "minify_css"]
