"""
Service layer for the NASUHA Connect backend.

Business logic shared by several routes and by startup tasks lives here:
user account creation, seeding and the media auto-archive loop.
"""
