"""Sequence sketching, read quality control, strain abundance estimation and p-value adjustment for metagenomic data."""

__version__ = "0.1.0"