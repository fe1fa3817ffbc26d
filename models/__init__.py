"""
Global storage instance. Nothing connects at import time; create_app()
configures the target and the first request connects.
"""
from models.db_storage import DBStorage

storage = DBStorage()
