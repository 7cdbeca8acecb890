# /procurement/core/deps.py
from typing import Optional

from fastapi import Request

from procurement.core.config import get_settings

SYSTEM_ACTOR = "system"


def get_actor_id(request: Request) -> str:
    """
    Actor recorded in the audit trail.

    Authentication is handled outside this service; the gateway forwards the
    operator or supplier id in the configured header.
    """
    header = get_settings().actor_header
    actor: Optional[str] = request.headers.get(header)
    actor = (actor or "").strip()
    return actor[:128] if actor else SYSTEM_ACTOR


def get_request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


def normalize_supplier_id(raw: Optional[str]) -> str:
    """Supplier ids compare exactly; surrounding whitespace is never significant."""
    supplier_id = (raw or "").strip()
    if not supplier_id:
        raise ValueError("Supplier id must not be empty.")
    return supplier_id
