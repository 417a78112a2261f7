"""Notification delivery service package."""
