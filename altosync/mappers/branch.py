# altosync/mappers/branch.py
"""Branches from the branch list become CMS companies.

Companies are insert-only: once a row exists for an upstream branch id it
is left alone so edits made in the CMS admin survive later imports.
"""
from sqlalchemy.orm import Session

from .. import crud
from ..errors import MissingKey
from ..models import City, Company, Country
from ..utils import logger, slugify
from ..xmlutil import text_at


def map_branch(node, default_country: str = "United Kingdom") -> dict:
    branch_id = text_at(node, "branchid")
    if not branch_id:
        raise MissingKey("branch without <branchid>")
    name = text_at(node, "name") or f"Branch {branch_id}"
    lines = [text_at(node, f"address/{part}") for part in ("line1", "line2", "line3")]
    return {
        "alto_branch_id": branch_id,
        "company_name": name,
        "company_alias": slugify(name),
        "address": ", ".join(p for p in lines if p),
        "town": text_at(node, "address/town"),
        "postcode": text_at(node, "address/postcode"),
        "country": text_at(node, "address/country") or default_country,
        "email": text_at(node, "email"),
        "phone": text_at(node, "telephone"),
        "fax": text_at(node, "fax"),
        "website": text_at(node, "website") or text_at(node, "url"),
    }


def import_branch(db: Session, node, default_country: str = "United Kingdom"):
    """Insert a company for this branch unless one exists. Returns ``(company_id, created)``."""
    data = map_branch(node, default_country)
    existing = crud.get_company_id(db, data["alto_branch_id"])
    if existing:
        logger.debug("Branch %s already mapped to company %s", data["alto_branch_id"], existing)
        return existing, False
    company = Company(
        alto_branch_id=data["alto_branch_id"],
        company_name=data["company_name"],
        company_alias=data["company_alias"],
        address=data["address"],
        postcode=data["postcode"],
        city=crud.get_or_create_dimension(db, City, data["town"]),
        country=crud.get_or_create_dimension(db, Country, data["country"]),
        email=data["email"],
        phone=data["phone"],
        fax=data["fax"],
        website=data["website"],
        published=1,
    )
    db.add(company)
    db.flush()
    logger.info("Created company %s for branch %s (%s)", company.id, data["alto_branch_id"], data["company_name"])
    return company.id, True
