"""
FieldWatch VI - Field Context
=============================
Supplies the selected field. The engine calls ``get_field`` once per field
identity change and treats the result as authoritative.
"""

import logging
from typing import Awaitable, Callable, Optional

from .models import Field

logger = logging.getLogger(__name__)

FieldLoader = Callable[[str], Awaitable[Field]]


class FieldContext:
    """Current field plus a loader for field records."""

    def __init__(self, loader: FieldLoader):
        self._loader = loader
        self.current_field: Optional[Field] = None

    async def get_field(self, field_id: str) -> Field:
        """Load a field and make it current; loader errors propagate."""
        field = await self._loader(field_id)
        logger.info("Loaded field %s (%s)", field.id, field.name)
        self.current_field = field
        return field

    def clear(self) -> None:
        self.current_field = None
