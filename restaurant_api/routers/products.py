from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from restaurant_api.core.database import get_db
from restaurant_api.deps import require_business
from restaurant_api.models.business_owner import BusinessOwner
from restaurant_api.models.product import Product
from restaurant_api.services.inventory import parse_metadata
from restaurant_api.services.r2_storage import store_image

router = APIRouter(prefix="/api/products", tags=["products"])

logger = logging.getLogger(__name__)


def _product_to_dict(product: Product) -> dict:
    return {
        "id": product.id,
        "business_id": product.business_id,
        "name": product.name,
        "description": product.description,
        "price": product.price,
        "product_type": product.product_type,
        "category": product.category,
        "is_active": product.is_active,
        "metadata": parse_metadata(product.meta),
        "created_at": product.created_at.isoformat() if product.created_at else None,
        "updated_at": product.updated_at.isoformat() if product.updated_at else None,
    }


def _get_owned_product(db: Session, product_id: int, business_id: int) -> Product:
    product = (
        db.query(Product)
        .filter(Product.id == product_id, Product.business_id == business_id)
        .first()
    )
    if not product:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found or not authorized")
    return product


def _upload_images(images: Optional[List[UploadFile]], business_id: int) -> list[str]:
    urls = []
    for image in images or []:
        url = store_image(image, business_id, "products")
        if url:
            urls.append(url)
    return urls


@router.post("", status_code=status.HTTP_201_CREATED)
def create_product(
    name: str = Form(...),
    price: float = Form(..., gt=0),
    description: Optional[str] = Form(None),
    product_type: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    metadata: Optional[str] = Form(None),
    images: List[UploadFile] = File(...),
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    image_urls = _upload_images(images, user.business_id)
    if not image_urls:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Images upload failed or missing")

    product = Product(
        business_id=user.business_id,
        name=name,
        description=description,
        price=price,
        product_type=product_type or "generic",
        category=category or None,
        is_active=True,
        meta={**parse_metadata(metadata), "images": image_urls},
    )
    db.add(product)
    db.commit()
    db.refresh(product)
    logger.info("Product created: product_id=%s business_id=%s", product.id, product.business_id)
    return _product_to_dict(product)


@router.get("")
def list_products(business_id: int = Query(..., gt=0), db: Session = Depends(get_db)):
    products = (
        db.query(Product)
        .filter(Product.business_id == business_id)
        .order_by(Product.id.asc())
        .all()
    )
    return [_product_to_dict(product) for product in products]


@router.get("/{product_id}")
def get_product(
    product_id: int,
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    return _product_to_dict(_get_owned_product(db, product_id, user.business_id))


@router.put("/{product_id}")
def update_product(
    product_id: int,
    name: Optional[str] = Form(None),
    price: Optional[float] = Form(None, gt=0),
    description: Optional[str] = Form(None),
    product_type: Optional[str] = Form(None),
    category: Optional[str] = Form(None),
    metadata: Optional[str] = Form(None),
    is_active: Optional[bool] = Form(None),
    images: Optional[List[UploadFile]] = File(None),
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    product = _get_owned_product(db, product_id, user.business_id)

    new_images = _upload_images(images, user.business_id)
    if metadata is not None:
        meta = parse_metadata(metadata)
    else:
        meta = dict(parse_metadata(product.meta))
    old_images = [url for url in parse_metadata(product.meta).get("images") or [] if isinstance(url, str)]
    if new_images:
        meta["images"] = new_images
    elif old_images:
        meta["images"] = old_images
    product.meta = meta

    if name is not None:
        product.name = name
    if price is not None:
        product.price = price
    if description is not None:
        product.description = description
    if product_type:
        product.product_type = product_type
    if category:
        product.category = category
    if is_active is not None:
        product.is_active = is_active

    db.commit()
    db.refresh(product)
    return _product_to_dict(product)


@router.delete("/{product_id}")
def delete_product(
    product_id: int,
    user: BusinessOwner = Depends(require_business),
    db: Session = Depends(get_db),
):
    product = _get_owned_product(db, product_id, user.business_id)
    db.delete(product)
    db.commit()
    logger.info("Product deleted: product_id=%s business_id=%s", product_id, user.business_id)
    return {"message": "Product deleted successfully"}
