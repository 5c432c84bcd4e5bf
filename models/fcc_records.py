from sqlalchemy import Column, Integer, String, Date, DateTime, Index, UniqueConstraint, func
from models.base import Base


class AmateurRecord(Base):
    """
    One row per amateur call sign (ULS ``AM.dat``).

    Design:
    - call_sign is the natural key; the surrogate id is never used to match
    - Re-importing the same file leaves the table in the same state
      (upsert by call_sign, last write wins)
    """
    __tablename__ = "fcc_amateur_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    call_sign = Column(String(20), nullable=False, unique=True)

    operator_class = Column(String(50), nullable=True)
    group_code = Column(String(10), nullable=True)
    region_code = Column(String(10), nullable=True)
    trustee_call_sign = Column(String(20), nullable=True)
    trustee_indicator = Column(String(10), nullable=True)
    physician_certification = Column(String(10), nullable=True)
    ve_signature = Column(String(10), nullable=True)
    systematic_call_sign_change = Column(String(10), nullable=True)
    vanity_call_sign_change = Column(String(10), nullable=True)
    vanity_relationship = Column(String(10), nullable=True)
    previous_call_sign = Column(String(20), nullable=True)
    previous_operator_class = Column(String(50), nullable=True)
    trustee_name = Column(String(255), nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        Index("idx_fcc_amateur_call_sign", "call_sign"),
    )


class EntityRecord(Base):
    """
    Licensee/entity rows (ULS ``EN.dat``).

    A call sign can own several rows, told apart by licensee_id and
    entity_type. NULLS NOT DISTINCT lets a row with a null key part still
    hit the ON CONFLICT path instead of duplicating (PostgreSQL 15+).
    """
    __tablename__ = "fcc_entity_records"

    id = Column(Integer, primary_key=True, autoincrement=True)
    call_sign = Column(String(20), nullable=False)
    entity_type = Column(String(10), nullable=True)
    licensee_id = Column(String(20), nullable=True)

    entity_name = Column(String(255), nullable=True)
    first_name = Column(String(100), nullable=True)
    mi = Column(String(10), nullable=True)
    last_name = Column(String(100), nullable=True)
    suffix = Column(String(20), nullable=True)
    phone = Column(String(20), nullable=True)
    fax = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)
    street_address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(50), nullable=True)
    zip_code = Column(String(20), nullable=True)
    po_box = Column(String(50), nullable=True)
    attention_line = Column(String(255), nullable=True)
    sgin = Column(String(10), nullable=True)
    frn = Column(String(20), nullable=True)
    applicant_type_code = Column(String(10), nullable=True)
    applicant_type_other = Column(String(100), nullable=True)
    status_code = Column(String(10), nullable=True)
    status_date = Column(Date, nullable=True)

    created_at = Column(DateTime, nullable=False, server_default=func.now())
    updated_at = Column(DateTime, nullable=False, server_default=func.now())

    __table_args__ = (
        UniqueConstraint(
            "call_sign", "licensee_id", "entity_type",
            name="uq_fcc_entity_natural_key",
            postgresql_nulls_not_distinct=True,
        ),
        Index("idx_fcc_entity_call_sign", "call_sign"),
    )
