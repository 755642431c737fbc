"""Padel ladder: teams, challenges and position-based rankings."""
