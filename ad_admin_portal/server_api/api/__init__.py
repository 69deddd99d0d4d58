"""
HTTP API of the portal. Every route except `/token` requires an operator
token, see `auth.get_current_operator`
"""

from __future__ import annotations

from typing import Annotated
from fastapi import Depends
from .. import app
from ..directory import DirectoryError
from .auth import Operator, get_current_operator
from .exceptions import directory_error_handler, response_with_perm_check
from .user import router as user_router
from .group import router as group_router
from .ui import router as ui_router

app.include_router(user_router)
app.include_router(group_router)
app.include_router(ui_router)
app.add_exception_handler(DirectoryError, directory_error_handler)


@app.get("/whoami", responses={401: response_with_perm_check})
async def whoami(
    operator: Annotated[Operator, Depends(get_current_operator)],
) -> Operator:
    """
    A way for an operator to check that the token is still good
    """
    return operator
