# Lab Security: Database Models
# Import all models here for SQLAlchemy discovery

from app.models.alert import Alert                      # noqa
from app.models.receiver import Receiver                # noqa
from app.models.authorized_user import AuthorizedUser   # noqa
