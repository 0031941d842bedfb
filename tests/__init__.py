"""Tests for tofrange."""
