"""mediasource: adapters mapping media APIs into one canonical content schema."""

__version__ = "0.1.0"
