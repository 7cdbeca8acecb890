from __future__ import annotations

from decimal import Decimal
from typing import Annotated

from pydantic import Field, StringConstraints

# --- Numeric primitives ---
PosDec4 = Annotated[Decimal, Field(gt=0, max_digits=20, decimal_places=4)]
PosInt = Annotated[int, Field(gt=0)]

# --- Identifiers ---
SupplierId = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=128)]
