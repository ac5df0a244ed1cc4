# altosync/api/routes.py
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session
from typing import List
from .. import crud, schemas
from ..db import get_db
from ..models import PDF_SLOT_COLUMNS
from ..staging import StagingStore
from ..utils import logger

router = APIRouter()


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/properties", response_model=List[schemas.PropertyOut])
def properties(
    skip: int = 0,
    limit: int = 20,
    category_id: int | None = Query(None),
    min_price: float | None = Query(None),
    max_price: float | None = Query(None),
    min_beds: int | None = Query(None),
    postcode: str | None = Query(None),
    db: Session = Depends(get_db)
):
    filters = schemas.PropertyFilter(
        category_id=category_id,
        min_price=min_price,
        max_price=max_price,
        min_beds=min_beds,
        postcode=postcode,
    )
    res = crud.list_properties(db, skip=skip, limit=limit, filters=filters.model_dump())
    return res["items"]


@router.get("/properties/{alto_id}", response_model=schemas.PropertyDetail)
def get_property(alto_id: str, db: Session = Depends(get_db)):
    obj = crud.get_property(db, alto_id)
    if not obj:
        raise HTTPException(status_code=404, detail="Property not found")
    detail = schemas.PropertyDetail.model_validate(obj)
    detail.photos = [schemas.PhotoOut.model_validate(p) for p in crud.get_photos(db, obj.id)]
    detail.documents = [getattr(obj, c) or "" for c in PDF_SLOT_COLUMNS]
    return detail


@router.get("/staging/stats", response_model=schemas.StagingStats)
def staging_stats(db: Session = Depends(get_db)):
    return StagingStore(db).stats()


@router.post("/import")
def trigger_import(request: Request):
    try:
        summary = request.app.state.orchestrator.run()
    except Exception as e:
        logger.exception("Import failed: %s", e)
        raise HTTPException(status_code=500, detail="Import failed")
    if summary.fatal:
        raise HTTPException(status_code=500, detail=summary.fatal)
    return summary.as_dict()
