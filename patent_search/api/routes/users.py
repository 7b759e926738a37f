from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from patent_search.core.errors import NotFoundError
from patent_search.db.session import get_db
from patent_search.dependencies.auth import AuthenticatedUser, get_current_user
from patent_search.schemas.auth import UserResponse
from patent_search.services.users import get_user

router = APIRouter()


@router.get("/me", response_model=UserResponse)
def get_current_profile(
    db: Session = Depends(get_db),
    user: AuthenticatedUser = Depends(get_current_user),
):
    """Get current user profile and subscription tier"""
    profile = get_user(db, user.id)
    if profile is None:
        raise NotFoundError("User not found")
    return profile
