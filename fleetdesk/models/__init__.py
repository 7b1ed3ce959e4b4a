# Fleetdesk database models
# Import all models here for SQLAlchemy discovery

from fleetdesk.models.deployment import Deployment    # noqa
from fleetdesk.models.vehicle import Vehicle          # noqa
from fleetdesk.models.alert import Alert              # noqa
