"""Delivery channels for notifications."""
