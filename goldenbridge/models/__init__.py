"""
Golden Bridge Women
Models package.

Holds the shared Flask-SQLAlchemy handle. The handle is bound to an
application in ``create_app`` so every app instance (and every test)
works against its own database.
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
