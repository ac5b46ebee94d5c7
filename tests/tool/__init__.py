"""Tests for the testenv-lcr command line tool."""
