"""Game domain services: lifecycle, questions, answers, scoring and invites.

This package holds the game rules. HTTP routes import from here and pass
the calling actor explicitly; nothing in this package reads the current
request or session.
"""
