"""Reminder queue and its periodic checker."""
