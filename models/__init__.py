"""Process-wide DBStorage singleton."""
from models.db_storage import DBStorage

storage = DBStorage()
storage.reload()
