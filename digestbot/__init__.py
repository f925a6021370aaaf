"""DigestBot: video summaries and trend analysis pipeline."""

__version__ = "0.1.0"
