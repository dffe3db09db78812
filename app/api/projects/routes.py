from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.projects import schemas
from app.api.projects.crud import project as project_crud
from app.core.database import get_db
from app.core.security import TokenData, get_current_user

router = APIRouter()


@router.get('/{project_id}', response_model=schemas.Project)
def get_project(
    project_id: int,
    current_user: TokenData = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return project_crud.get(db=db, id=project_id)
