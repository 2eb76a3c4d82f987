# storefront/api/routes/products.py
from collections import defaultdict
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from storefront.api.deps import get_db, require_admin
from storefront.api.schemas.product import ProductCreate, ProductOut, ProductUpdate
from storefront.database import FileBackedDB
from storefront.models.order import utcnow_iso
from storefront.models.product import Product
from storefront.models.user import User

router = APIRouter(prefix="/api/products", tags=["products"])

BESTSELLER_MIN_RATING = 4.0


def _load(db: FileBackedDB, product_id: str) -> Product:
    row = db.get_record("products", "id", product_id)
    if not row:
        raise HTTPException(status_code=404, detail="Product not found")
    return Product.from_dict(row)


@router.get("/", response_model=List[ProductOut])
def list_products(
    q: Optional[str] = Query(None, description="search query (name and description)"),
    category: Optional[str] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: FileBackedDB = Depends(get_db),
):
    """
    List products, newest first. `q` is a case-insensitive substring match.
    """
    results = []
    for r in db.list_records("products"):
        p = Product.from_dict(r)
        if category and p.category.lower() != category.lower():
            continue
        if q:
            needle = q.lower()
            if needle not in p.name.lower() and needle not in p.description.lower():
                continue
        results.append(p)
    results.sort(key=lambda p: p.created_at or "", reverse=True)
    return [p.to_api() for p in results[offset: offset + limit]]


@router.get("/meta/categories")
def list_categories(db: FileBackedDB = Depends(get_db)):
    categories = {Product.from_dict(r).category for r in db.list_records("products")}
    return {"categories": sorted(c for c in categories if c)}


@router.get("/featured/new", response_model=List[ProductOut])
def new_arrivals(limit: int = Query(8, ge=1, le=100), db: FileBackedDB = Depends(get_db)):
    """Products flagged `is_new`, newest first."""
    products = [p for p in map(Product.from_dict, db.list_records("products")) if p.is_new]
    products.sort(key=lambda p: p.created_at or "", reverse=True)
    return [p.to_api() for p in products[:limit]]


@router.get("/featured/bestsellers", response_model=List[ProductOut])
def bestsellers(limit: int = Query(8, ge=1, le=100), db: FileBackedDB = Depends(get_db)):
    """
    Products whose average review rating is at least 4, best rated first and
    then by number of reviews.
    """
    ratings: Dict[str, List[int]] = defaultdict(list)
    for r in db.list_records("reviews"):
        try:
            ratings[r.get("product_id")].append(int(float(r.get("rating") or 0)))
        except ValueError:
            continue
    ranked = []
    for r in db.list_records("products"):
        scores = ratings.get(r.get("id"))
        if not scores:
            continue
        average = round(sum(scores) / len(scores), 2)
        if average >= BESTSELLER_MIN_RATING:
            ranked.append((average, len(scores), Product.from_dict(r)))
    ranked.sort(key=lambda t: (t[0], t[1]), reverse=True)
    return [dict(p.to_api(), rating=average, rating_count=count) for average, count, p in ranked[:limit]]


@router.get("/{product_id}", response_model=ProductOut)
def get_product(product_id: str, db: FileBackedDB = Depends(get_db)):
    return _load(db, product_id).to_api()


@router.post("/", response_model=ProductOut, status_code=201)
def create_product(payload: ProductCreate, current_user: User = Depends(require_admin),
                   db: FileBackedDB = Depends(get_db)):
    """
    Create a new product (admin only). `created_by` is the admin's user id.
    """
    now = utcnow_iso()
    product = Product(**payload.model_dump(), created_by=current_user.id, created_at=now, updated_at=now)
    saved = db.create_record("products", product.to_dict(), id_field="id")
    return Product.from_dict(saved).to_api()


@router.put("/{product_id}", response_model=ProductOut, dependencies=[Depends(require_admin)])
def update_product(product_id: str, payload: ProductUpdate, db: FileBackedDB = Depends(get_db)):
    product = _load(db, product_id)
    for key, value in payload.model_dump(exclude_unset=True).items():
        if value is not None:
            setattr(product, key, value)
    product.updated_at = utcnow_iso()
    row = product.to_dict()
    row.pop("id", None)
    updated = db.update_record("products", "id", product_id, row)
    if not updated:
        raise HTTPException(status_code=404, detail="Product not found")
    return Product.from_dict(updated).to_api()


@router.delete("/{product_id}", status_code=204, dependencies=[Depends(require_admin)])
def delete_product(product_id: str, db: FileBackedDB = Depends(get_db)):
    """
    Remove a product. Existing order lines keep their name/price/image snapshot.
    """
    if not db.delete_record("products", "id", product_id):
        raise HTTPException(status_code=404, detail="Product not found")
