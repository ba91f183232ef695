"""readscope: per-scope readability scores for Java sources."""

__version__ = "0.1.0"
