from __future__ import annotations
from typing import NewType, Dict

VehicleId    = NewType("VehicleId", str)
EpochSeconds = NewType("EpochSeconds", int)    # UTC, may be negative
Watermarks   = Dict[VehicleId, EpochSeconds]   # vehicle -> latest archived timestamp
