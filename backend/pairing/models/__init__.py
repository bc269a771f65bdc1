"""ORM Models - SQLAlchemy declarative models for all persisted records.

Invariants:
    - All models inherit from Base (db/base.py)
    - Request tables are append-only: rows change status, never get deleted

Design Decisions:
    - One file per entity for locality
    - All models imported here so metadata is complete before create_all / autogenerate
"""

from pairing.models.student import StudentModel  # noqa: F401
from pairing.models.supervisor import SupervisorModel  # noqa: F401
from pairing.models.project import ProjectModel  # noqa: F401
from pairing.models.partnership_request import (  # noqa: F401
    PartnershipRequestModel, SupervisorPartnershipRequestModel,
)
from pairing.models.application import ApplicationModel  # noqa: F401
