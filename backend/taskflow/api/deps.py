"""Shared FastAPI dependencies for route modules.

Routes receive the database session and the resolved principal from here and
pass both explicitly into the service layer.
"""

from __future__ import annotations

from fastapi import Depends

from taskflow.core.auth import get_principal
from taskflow.db.session import get_session

SESSION_DEP = Depends(get_session)
PRINCIPAL_DEP = Depends(get_principal)
