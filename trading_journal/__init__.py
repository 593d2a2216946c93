"""Personal trading journal: trade records, local persistence and R-multiple statistics."""

__version__ = "1.0.0"
