from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile, status
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import require_business
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.category import Category
from restaurant_api.services.inventory import parse_metadata
from restaurant_api.services.r2_storage import store_image

router = APIRouter(prefix="/api/categories", tags=["categories"])


def _category_to_dict(category: Category) -> dict:
    meta = parse_metadata(category.meta)
    return {
        "id": category.id,
        "business_id": category.business_id,
        "name": category.name,
        "metadata": meta,
        "image_url": meta.get("imageUrl"),
        "created_at": category.created_at.isoformat() if category.created_at else None,
    }


def _get_owned_category(db: Session, category_id: int, business_id: int, action: str) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Category not found")
    if category.business_id != business_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Not allowed to {action} this category")
    return category


@router.post("", status_code=status.HTTP_201_CREATED)
def create_category(
    name: str = Form(..., min_length=1),
    image: Optional[UploadFile] = File(None),
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    image_url = store_image(image, user.business_id, "categories")
    category = Category(business_id=user.business_id, name=name, meta={"imageUrl": image_url})
    db.add(category)
    db.commit()
    db.refresh(category)
    return _category_to_dict(category)


@router.get("")
def list_categories(business_id: int = Query(..., gt=0), db: Session = Depends(get_db)):
    categories = (
        db.query(Category)
        .filter(Category.business_id == business_id)
        .order_by(Category.id.asc())
        .all()
    )
    return [_category_to_dict(category) for category in categories]


@router.put("/{category_id}")
def update_category(
    category_id: int,
    name: Optional[str] = Form(None),
    image: Optional[UploadFile] = File(None),
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    category = _get_owned_category(db, category_id, user.business_id, "edit")
    image_url = store_image(image, user.business_id, "categories")
    if name:
        category.name = name
    if image_url:
        category.meta = {**parse_metadata(category.meta), "imageUrl": image_url}
    db.commit()
    db.refresh(category)
    return _category_to_dict(category)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_category(
    category_id: int,
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    category = _get_owned_category(db, category_id, user.business_id, "delete")
    db.delete(category)
    db.commit()
    return Response(status_code=status.HTTP_204_NO_CONTENT)
