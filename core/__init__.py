"""Deite core — shared path registry."""
