"""Shared utilities for imgstudio."""
