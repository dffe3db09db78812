from typing import Optional

from sqlalchemy.orm import Session

from app.api.base_crud import CRUDBase
from app.api.projects import models, schemas


class CRUDProject(CRUDBase[models.Project, schemas.ProjectCreate, schemas.ProjectCreate]):
    def get_or_none(self, db: Session, project_id: int) -> Optional[models.Project]:
        return db.query(self.model).filter(self.model.id == project_id).first()


project = CRUDProject(models.Project)
