from typing import Any, Dict, List

from fastapi import APIRouter, Depends, HTTPException, status

from storefront.api.deps import get_current_user, get_db
from storefront.api.schemas.reviews import ReviewCreate, ReviewOut, ReviewUpdate
from storefront.core.errors import ConflictError, DuplicateRecordError
from storefront.database import FileBackedDB
from storefront.models.order import parse_timestamp, utcnow_iso
from storefront.models.user import User

router = APIRouter(prefix="/api/products", tags=["reviews"])


def _ensure_product(db: FileBackedDB, product_id: str) -> None:
    if not db.get_record("products", "id", product_id):
        raise HTTPException(status_code=404, detail="Product not found")


def _review_for_product(db: FileBackedDB, product_id: str, review_id: str) -> Dict[str, Any]:
    rec = db.get_record("reviews", "id", review_id)
    if not rec or str(rec.get("product_id")) != str(product_id):
        raise HTTPException(status_code=404, detail="Review not found")
    return rec


def _has_purchased(db: FileBackedDB, user_id: str, product_id: str) -> bool:
    order_ids = {o["id"] for o in db.find_records("orders", user_id=user_id)}
    if not order_ids:
        return False
    return any(line.get("order_id") in order_ids for line in db.find_records("order_items", product_id=product_id))


def _to_out(rec: Dict[str, Any], names: Dict[str, str]) -> Dict[str, Any]:
    out = dict(rec)
    out["rating"] = int(float(rec.get("rating") or 0))
    out["helpful_count"] = int(float(rec.get("helpful_count") or 0))
    out["is_verified_purchase"] = str(rec.get("is_verified_purchase")).lower() == "true"
    out["updated_at"] = rec.get("updated_at") or None
    out["user_name"] = names.get(rec.get("user_id"))
    return out


def _names(db: FileBackedDB) -> Dict[str, str]:
    return {r["id"]: User.from_dict(r).display_name for r in db.list_records("users") if r.get("id")}


@router.get("/{product_id}/reviews", response_model=List[ReviewOut])
def list_reviews(product_id: str, db: FileBackedDB = Depends(get_db)):
    """Reviews for a product, newest first."""
    rows = db.find_records("reviews", product_id=product_id)
    rows.sort(key=lambda r: parse_timestamp(r.get("created_at")), reverse=True)
    names = _names(db)
    return [_to_out(r, names) for r in rows]


@router.get("/{product_id}/reviews/summary", response_model=Dict[str, Any])
def reviews_summary(product_id: str, db: FileBackedDB = Depends(get_db)):
    rows = db.find_records("reviews", product_id=product_id)
    distribution = {str(star): 0 for star in range(1, 6)}
    ratings = []
    for r in rows:
        try:
            rating = int(float(r.get("rating") or 0))
        except ValueError:
            continue
        if 1 <= rating <= 5:
            ratings.append(rating)
            distribution[str(rating)] += 1
    average = round(sum(ratings) / len(ratings), 2) if ratings else 0.0
    return {"count": len(ratings), "average": average, "distribution": distribution}


@router.post("/{product_id}/reviews", response_model=ReviewOut, status_code=201)
def create_review(product_id: str, payload: ReviewCreate, current_user: User = Depends(get_current_user),
                  db: FileBackedDB = Depends(get_db)):
    """
    One review per user per product. Marked as a verified purchase when the
    user has an order containing the product.
    """
    _ensure_product(db, product_id)
    if db.find_records("reviews", product_id=product_id, user_id=current_user.id):
        raise ConflictError("You have already reviewed this product")

    review = {
        "product_id": product_id,
        "user_id": current_user.id,
        # composite key so concurrent duplicates are rejected by the store
        "review_key": f"{product_id}:{current_user.id}",
        "rating": payload.rating,
        "title": payload.title.strip(),
        "body": payload.body.strip(),
        "is_verified_purchase": _has_purchased(db, current_user.id, product_id),
        "helpful_count": 0,
        "created_at": utcnow_iso(),
        "updated_at": "",
    }
    try:
        saved = db.create_record("reviews", review, id_field="id", unique=("review_key",))
    except DuplicateRecordError:
        raise ConflictError("You have already reviewed this product")
    return _to_out(saved, {current_user.id: current_user.display_name})


@router.put("/{product_id}/reviews/{review_id}", response_model=ReviewOut)
def update_review(product_id: str, review_id: str, payload: ReviewUpdate,
                  current_user: User = Depends(get_current_user), db: FileBackedDB = Depends(get_db)):
    rec = _review_for_product(db, product_id, review_id)
    if str(rec.get("user_id")) != str(current_user.id):
        raise HTTPException(status_code=403, detail="Not allowed")
    updates = {k: v for k, v in payload.model_dump(exclude_unset=True).items() if v is not None}
    updates["updated_at"] = utcnow_iso()
    saved = db.update_record("reviews", "id", review_id, updates)
    if not saved:
        raise HTTPException(status_code=404, detail="Review not found")
    return _to_out(saved, {current_user.id: current_user.display_name})


@router.delete("/{product_id}/reviews/{review_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_review(product_id: str, review_id: str, current_user: User = Depends(get_current_user),
                  db: FileBackedDB = Depends(get_db)):
    rec = _review_for_product(db, product_id, review_id)
    if str(rec.get("user_id")) != str(current_user.id):
        # attempt to delete by non-owner
        raise HTTPException(status_code=403, detail="Not allowed")
    db.delete_record("reviews", "id", review_id)


@router.post("/{product_id}/reviews/{review_id}/helpful", response_model=ReviewOut)
def mark_helpful(product_id: str, review_id: str, current_user: User = Depends(get_current_user),
                 db: FileBackedDB = Depends(get_db)):
    _review_for_product(db, product_id, review_id)
    saved = db.increment("reviews", "id", review_id, "helpful_count")
    if not saved:
        raise HTTPException(status_code=404, detail="Review not found")
    return _to_out(saved, _names(db))
