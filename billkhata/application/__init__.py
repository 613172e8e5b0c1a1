"""Workflows that combine domain rules with API calls and user notifications."""
