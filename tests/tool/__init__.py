"""Tests for the brigade-store command line tool."""
