"""Blackmyna SMS channel adapter."""
