# altosync/models.py
"""SQLAlchemy ORM models for the staging tables and the CMS destination schema.

The ``osrs_*`` tables mirror the property-listing CMS layout (only the
columns the importer reads or writes). Dimension foreign keys are plain
integers with ``0`` meaning "unknown", as the CMS expects.
"""
from sqlalchemy import (
    Column, Integer, Text, String, Float, Boolean, Date, TIMESTAMP,
    func, Index, UniqueConstraint,
)
from .db import Base

PDF_SLOT_COLUMNS = ["pro_pdf_file"] + [f"pro_pdf_file{i}" for i in range(1, 10)]


class StagedBranch(Base):
    __tablename__ = "alto_branches"
    id = Column(Integer, primary_key=True)
    # upstream branch id, or the sentinel for the whole branch list
    alto_branch_id = Column(String(255), nullable=False, unique=True, index=True)
    xml_data = Column(Text, nullable=False)
    fingerprint = Column(String(64), nullable=False)
    last_synced = Column(TIMESTAMP(timezone=True), server_default=func.now())
    processed = Column(Boolean, nullable=False, default=False, index=True)


class StagedProperty(Base):
    __tablename__ = "alto_properties"
    id = Column(Integer, primary_key=True)
    alto_property_id = Column(String(255), nullable=False, unique=True, index=True)
    alto_branch_id = Column(String(255), nullable=False, index=True)
    xml_data = Column(Text, nullable=False)
    fingerprint = Column(String(64), nullable=False)
    last_synced = Column(TIMESTAMP(timezone=True), server_default=func.now())
    processed = Column(Boolean, nullable=False, default=False, index=True)


class Company(Base):
    __tablename__ = "osrs_companies"
    id = Column(Integer, primary_key=True)
    alto_branch_id = Column(String(255), unique=True)
    company_name = Column(Text)
    company_alias = Column(Text)
    email = Column(Text)
    phone = Column(Text)
    fax = Column(Text)
    website = Column(Text)
    address = Column(Text)
    city = Column(Integer, default=0)
    country = Column(Integer, default=0)
    postcode = Column(Text)
    published = Column(Integer, default=1)


class City(Base):
    __tablename__ = "osrs_cities"
    lookup_column = "city"
    id = Column(Integer, primary_key=True)
    city = Column(String(255), index=True)
    published = Column(Integer, default=1)


class State(Base):
    __tablename__ = "osrs_states"
    lookup_column = "state_name"
    id = Column(Integer, primary_key=True)
    state_name = Column(String(255), index=True)
    published = Column(Integer, default=1)


class Country(Base):
    __tablename__ = "osrs_countries"
    lookup_column = "country_name"
    id = Column(Integer, primary_key=True)
    country_name = Column(String(255), index=True)
    published = Column(Integer, default=1)


class Currency(Base):
    __tablename__ = "osrs_currencies"
    lookup_column = "currency_code"
    id = Column(Integer, primary_key=True)
    currency_name = Column(String(255))
    currency_code = Column(String(16), index=True)
    currency_symbol = Column(String(16))
    published = Column(Integer, default=1)


class PropertyType(Base):
    __tablename__ = "osrs_types"
    lookup_column = "type_name"
    id = Column(Integer, primary_key=True)
    type_name = Column(String(255), index=True)
    published = Column(Integer, default=1)


class Category(Base):
    __tablename__ = "osrs_categories"
    lookup_column = "category_name"
    id = Column(Integer, primary_key=True)
    category_name = Column(String(255), index=True)
    category_alias = Column(String(255))
    published = Column(Integer, default=1)


class Property(Base):
    __tablename__ = "osrs_properties"
    id = Column(Integer, primary_key=True)
    alto_id = Column(String(255), nullable=False, unique=True, index=True)
    ref = Column(Text)
    pro_name = Column(Text)
    pro_alias = Column(Text)
    pro_type = Column(Integer, default=0)
    category_id = Column(Integer, default=0)
    company_id = Column(Integer, default=0)
    address = Column(Text)
    full_address = Column(Text)
    postcode = Column(Text)
    city = Column(Integer, default=0)
    state = Column(Integer, default=0)
    country = Column(Integer, default=0)
    pro_small_desc = Column(Text)
    pro_full_desc = Column(Text)
    price = Column(Float, default=0)
    price_text = Column(Text)
    curr = Column(Integer, default=0)
    bed_room = Column(Integer, default=0)
    bath_room = Column(Float, default=0)
    rooms = Column(Integer, default=0)
    lat_add = Column(Text)
    long_add = Column(Text)
    square_feet = Column(Float, default=0)
    lot_size = Column(Float, default=0)
    built_on = Column(Integer, default=0)
    tenure = Column(Text)
    energy_rating = Column(Text)
    environmental_impact = Column(Text)
    isSold = Column(Integer, default=0)
    status_label = Column(Text)
    published = Column(Integer, default=1)
    approved = Column(Integer, default=1)
    hits = Column(Integer, default=0)
    created = Column(Date)
    modified = Column(Date)
    pro_pdf_file = Column(Text)
    pro_pdf_file1 = Column(Text)
    pro_pdf_file2 = Column(Text)
    pro_pdf_file3 = Column(Text)
    pro_pdf_file4 = Column(Text)
    pro_pdf_file5 = Column(Text)
    pro_pdf_file6 = Column(Text)
    pro_pdf_file7 = Column(Text)
    pro_pdf_file8 = Column(Text)
    pro_pdf_file9 = Column(Text)
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), onupdate=func.now())


class PropertyCategory(Base):
    __tablename__ = "osrs_property_categories"
    id = Column(Integer, primary_key=True)
    pid = Column(Integer, nullable=False, index=True)
    category_id = Column(Integer, nullable=False)
    __table_args__ = (UniqueConstraint("pid", "category_id"),)


class Photo(Base):
    __tablename__ = "osrs_photos"
    id = Column(Integer, primary_key=True)
    pro_id = Column(Integer, nullable=False, index=True)
    # filename only, relative to the property's image folder
    image = Column(String(255), nullable=False)
    image_desc = Column(Text, default="")
    ordering = Column(Integer, default=0)
    is_default = Column(Integer, default=0)
    __table_args__ = (UniqueConstraint("pro_id", "image"),)


class XmlDetail(Base):
    __tablename__ = "osrs_xml_details"
    id = Column(Integer, primary_key=True)
    kind = Column(String(16), nullable=False)
    xml_id = Column(String(255), nullable=False)
    obj_content = Column(Text)
    imported = Column(Integer, default=0)
    __table_args__ = (UniqueConstraint("kind", "xml_id"),)


class Configuration(Base):
    __tablename__ = "osrs_configuration"
    id = Column(Integer, primary_key=True)
    fieldname = Column(String(255), unique=True)
    fieldvalue = Column(Text)


Index("idx_osrs_properties_category", Property.category_id)
Index("idx_osrs_photos_ordering", Photo.pro_id, Photo.ordering)
