"""SecResearch: multi-source vulnerability search aggregator.

This package queries vulnerability databases, code-hosting search and
commercial intelligence APIs in parallel, normalizes their responses into
one record format, and serves the combined results over HTTP or the CLI.
"""

__version__ = "0.3.0"
