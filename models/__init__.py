"""
Persistence layer. `storage` is the process-wide DBStorage; the app factory
binds it to a database with storage.reload(DATABASE_URL).
"""
from models.db_storage import DBStorage

storage = DBStorage()
