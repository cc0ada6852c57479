"""Instance DTOs.

Application layer defines its own input DTOs so services have no
dependency on the API layer's pydantic models.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class PhaseDatesDTO:
    """Caller-supplied schedule for one phase, matched to phases by position.

    Attributes:
        planned_start_date: Planned start of the phase.
        planned_end_date: Deadline of the phase; None leaves it open-ended.
        settings: Instance overrides of the phase's template settings.
    """

    planned_start_date: datetime | None = None
    planned_end_date: datetime | None = None
    settings: Mapping[str, Any] = field(default_factory=dict)
