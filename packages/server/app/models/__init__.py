# SQLModel definitions, imported here to ensure metadata is populated.
from .base import UUIDPrimaryKey, TimestampMixin  # noqa: F401
from .organization import Organization  # noqa: F401
from .user import User  # noqa: F401
from .user_org import UserOrganization  # noqa: F401
