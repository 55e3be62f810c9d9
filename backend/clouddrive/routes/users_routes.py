from fastapi import APIRouter, Depends

from clouddrive.auth.security import get_current_user
from clouddrive.models import User

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me")
def get_me(user: User = Depends(get_current_user)):
    return user.to_public_dict()
