"""Test suite for planflow."""
