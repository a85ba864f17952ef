"""Handler modules for CRD resources."""

# Import handlers to register them - all handlers register themselves via @kopf decorators
from . import nat_gateway  # noqa: F401
from . import network  # noqa: F401
from . import provider_config  # noqa: F401
from . import public_ip  # noqa: F401
from . import security_group  # noqa: F401
from . import security_group_rule  # noqa: F401
from . import snat_rule  # noqa: F401
from . import subnet  # noqa: F401
