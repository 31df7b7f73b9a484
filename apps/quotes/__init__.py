"""Motivational quotes from public quote APIs."""
