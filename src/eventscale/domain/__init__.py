"""Event domain models."""

from eventscale.domain.models import *  # noqa: F401,F403
from eventscale.domain.models import __all__  # noqa: F401
