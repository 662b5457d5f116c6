"""Database base classes and models."""
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


# Import models so Alembic can autogenerate migrations
import threadcraft.db.models.user  # noqa: F401,E402
import threadcraft.db.models.subscription  # noqa: F401,E402
import threadcraft.db.models.generated_content  # noqa: F401,E402
import threadcraft.db.models.processed_webhook_event  # noqa: F401,E402
