"""Booking lifecycle and availability reservation engine."""
