"""Bookings domain - reading, updating and cancelling bookings"""
