"""Tests of expected surplus computation and inversion."""
