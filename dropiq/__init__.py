"""DROPIQ airdrop discovery and vetting API."""

__version__ = "0.1.0"
