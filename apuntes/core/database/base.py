# File: apuntes/core/database/base.py

from sqlalchemy.orm import declarative_base

# The shared registry. Job tracking models inherit from this.
Base = declarative_base()
