"""Import every model so Base.metadata is complete."""

from .brand import Brand  # noqa: F401
from .image import Image  # noqa: F401
from .promoter import Promoter  # noqa: F401
from .users import User  # noqa: F401
from .inventory.item import BrandItemLink, Item  # noqa: F401
from .inventory.size import ItemSize  # noqa: F401
from .inventory.transaction import Transaction  # noqa: F401
