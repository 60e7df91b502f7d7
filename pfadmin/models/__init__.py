"""
Provident Fund Back Office
SQLAlchemy extension instance shared by every model module.

Usage:
    from pfadmin.models import db
"""

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()
