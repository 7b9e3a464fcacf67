"""Shared utilities for touchterm."""
