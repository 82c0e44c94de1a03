"""Webhook resources that wake subscription sync loops."""
