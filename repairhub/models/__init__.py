# model registration (Base.metadata must see every table)
from repairhub.models.user import User  # noqa: F401
from repairhub.models.technician_profile import TechnicianProfile  # noqa: F401
from repairhub.models.repair_request import RepairRequest  # noqa: F401
from repairhub.models.bid import Bid  # noqa: F401
from repairhub.models.transaction import Transaction  # noqa: F401
from repairhub.models.notification import Notification  # noqa: F401
from repairhub.models.review import Review  # noqa: F401
