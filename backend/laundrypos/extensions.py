# Overview: Flask extension instances for database, migrations, read cache, and change feed.

from flask_sqlalchemy import SQLAlchemy
from flask_migrate import Migrate

from .services.cache_service import CollectionCache
from .services.change_feed_service import ChangeFeed

db = SQLAlchemy()
migrate = Migrate()
cache = CollectionCache()
change_feed = ChangeFeed()
