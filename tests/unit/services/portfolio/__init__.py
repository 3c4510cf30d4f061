"""Tests for the portfolio accounting service."""
