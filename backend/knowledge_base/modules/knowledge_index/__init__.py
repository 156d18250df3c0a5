"""Semantic index over user entities."""
