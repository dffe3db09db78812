from typing import Generic, List, Optional, Tuple, Type, TypeVar

from fastapi import HTTPException, status
from pydantic import BaseModel
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.declarative import DeclarativeMeta
from sqlalchemy.orm import Query, Session

from app.core.exceptions.attendance_exceptions import NotFound
from app.core.logger import logger

ModelType = TypeVar('ModelType', bound=DeclarativeMeta)
CreateSchemaType = TypeVar('CreateSchemaType', bound=BaseModel)
UpdateSchemaType = TypeVar('UpdateSchemaType', bound=BaseModel)


class CRUDBase(Generic[ModelType, CreateSchemaType, UpdateSchemaType]):
    def __init__(self, model: Type[ModelType]):
        self.model = model

    def _apply_filters(
        self, query: Query, filters: Optional[BaseModel] = None
    ) -> Query:
        """Override this method to implement filter logic"""
        return query

    def create(self, db: Session, obj: CreateSchemaType) -> ModelType:
        """Create a new record."""
        try:
            obj_data = obj.model_dump()
            model_columns = self.model.__table__.columns.keys()
            filtered_data = {k: v for k, v in obj_data.items() if k in model_columns}

            db_obj = self.model(**filtered_data)
            db.add(db_obj)
            db.commit()
            db.refresh(db_obj)
            return db_obj
        except IntegrityError as e:
            logger.error('Error creating %s: %s', self.model.__name__, str(e))
            db.rollback()
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail=f'{self.model.__name__} conflicts with an existing record',
            )

    def get(self, db: Session, id: int) -> ModelType:
        """Get a single record by id."""
        obj = db.query(self.model).filter(self.model.id == id).first()
        if not obj:
            logger.error('%s %s not found', self.model.__name__, id)
            raise NotFound(f'{self.model.__name__} {id} not found')
        return obj

    def find(
        self,
        db: Session,
        skip: int = 0,
        limit: int = 100,
        filters: Optional[BaseModel] = None,
        sort_by: str = 'created_at',
        sort_order: str = 'desc',
    ) -> Tuple[List[ModelType], int]:
        """Get a page of records with filters and sorting, plus the total count."""
        query = db.query(self.model)
        query = self._apply_filters(query, filters)

        if not hasattr(self.model, sort_by):
            raise HTTPException(
                status_code=400, detail=f'Invalid sort field: {sort_by}'
            )

        order_by = getattr(self.model, sort_by)
        if sort_order == 'desc':
            order_by = order_by.desc()

        total = query.count()
        items = query.order_by(order_by).offset(skip).limit(limit).all()
        return items, total
