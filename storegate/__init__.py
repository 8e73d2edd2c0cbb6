"""Attestation-gated purchase eligibility for the storefront."""

__version__ = "0.1.0"
