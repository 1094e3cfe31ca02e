"""Tests for pg_sweep."""
