"""Poseidon: detection and classification of non-tidal water-level events."""
