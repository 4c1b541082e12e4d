"""
Bookings domain

Finalization of paid payments into appointments and laundry or cleaning
orders, order references and booking status changes.
"""
