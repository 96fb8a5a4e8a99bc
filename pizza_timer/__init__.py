"""Companion service for the active-pizza timer and step notifications."""
