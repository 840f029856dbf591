"""portfolio_ai — multi-provider AI orchestration for a portfolio tracker."""

from portfolio_ai.version import __version__

__all__ = ["__version__"]
