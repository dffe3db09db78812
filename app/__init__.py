"""Volunteer Attendance API Application."""
