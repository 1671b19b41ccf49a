"""Test package for nba_salary."""
