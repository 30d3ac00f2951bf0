"""Helpdesk ticket lifecycle service."""
