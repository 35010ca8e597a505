"""Slotbook availability and booking engine."""
