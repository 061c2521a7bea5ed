"""Relational storage for the HTS hierarchy."""
