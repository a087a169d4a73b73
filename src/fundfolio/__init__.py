"""Fund portfolio analytics and valuation-cache engine."""

__version__ = "0.1.0"
