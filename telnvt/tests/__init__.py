"""Tests for the telnvt package."""
