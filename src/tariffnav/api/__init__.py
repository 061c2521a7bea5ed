"""HTTP surface for the classification engine."""
