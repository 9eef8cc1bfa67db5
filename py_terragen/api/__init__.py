"""HTTP interface for planet generation."""
