"""Recipe engine: resolve, configure and drive package-recipe builds."""

__version__ = "0.1.0"
