"""Domain modules package."""

from bookindoor.modules.audit import models as audit_models  # noqa: F401
from bookindoor.modules.booking import models as booking_models  # noqa: F401
from bookindoor.modules.grounds import models as grounds_models  # noqa: F401
from bookindoor.modules.identity import models as identity_models  # noqa: F401
from bookindoor.modules.notifications import models as notifications_models  # noqa: F401
