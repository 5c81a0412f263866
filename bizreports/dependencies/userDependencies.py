from typing import Annotated, Optional
from fastapi import Depends, Header, HTTPException, status
from uuid import UUID


def get_current_user_id(x_user_id: Optional[str] = Header(None, alias="X-User-ID")) -> UUID:
    """Acting user of the request, taken from the X-User-ID header"""
    if not x_user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-User-ID header"
        )
    try:
        return UUID(x_user_id)
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid X-User-ID format. Must be a valid UUID"
        )


user_id_dependency = Annotated[UUID, Depends(get_current_user_id)]
