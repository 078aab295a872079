"""Package listing schemas."""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class PackageModel(BaseModel):
    package_id: int
    destination: str
    loaded_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None


class PackageListResponse(BaseModel):
    packages: List[PackageModel]
