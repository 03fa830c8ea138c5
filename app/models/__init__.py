# app/models/__init__.py
from app.db.base import Base  # noqa: F401

from . import user               # noqa: F401
from . import company            # noqa: F401
from . import creds              # noqa: F401
from . import invite             # noqa: F401
from . import verification_code  # noqa: F401
from . import action             # noqa: F401
from . import team               # noqa: F401
