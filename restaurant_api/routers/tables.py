from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import require_business
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.services.tables import list_tables_with_status, register_table

router = APIRouter(prefix="/api/tables", tags=["tables"])


class TableCreate(BaseModel):
    table_number: int = Field(..., ge=1)


def _table_to_dict(table) -> dict:
    return {
        "id": table.id,
        "business_id": table.business_id,
        "table_number": table.table_number,
    }


@router.post("")
def create_table(
    payload: TableCreate,
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    table, created = register_table(db, business_id=user.business_id, table_number=payload.table_number)
    if created:
        return JSONResponse(
            status_code=status.HTTP_201_CREATED,
            content={"message": "Table registered", "table": _table_to_dict(table)},
        )
    return {"message": "Table already exists", "table": _table_to_dict(table)}


@router.get("/{business_id}")
def list_tables(business_id: int, db: Session = Depends(get_db)):
    return {"tables": list_tables_with_status(db, business_id=business_id)}
