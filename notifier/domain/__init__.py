"""Notification domain: entities, contracts, errors and pure services."""
