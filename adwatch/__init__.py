"""adwatch: polls classified-ad search pages and reports new listings once."""

__version__ = "0.1.0"
