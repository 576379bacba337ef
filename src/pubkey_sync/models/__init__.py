"""Ledger and submission models."""
