"""Tests for the account_service package."""
