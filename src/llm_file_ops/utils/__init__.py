"""Utility helpers for paths and text."""
