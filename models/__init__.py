from models.db_storage import DBStorage

# Global storage; create_app() binds it to the configured database via reload()
storage = DBStorage()
