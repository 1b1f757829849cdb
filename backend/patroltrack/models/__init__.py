# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.
# client_service doit précéder guard et scan_event (FK vers client_services.id).

from patroltrack.models.checkpoint import Checkpoint  # noqa: F401
from patroltrack.models.client_service import ClientService, ServiceCheckpoint  # noqa: F401
from patroltrack.models.guard import Guard  # noqa: F401
from patroltrack.models.scan_event import ScanEvent  # noqa: F401
