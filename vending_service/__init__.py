"""Vending machine purchase service."""
