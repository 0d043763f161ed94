from sqlalchemy import Column, Integer, String, Text, BigInteger, UniqueConstraint

from jobdesk.db import Base


class Document(Base):
    """One JSON document at tenant/collection/doc_id."""

    __tablename__ = "documents"
    id = Column(Integer, primary_key=True, autoincrement=True)
    tenant_id = Column(String(128), nullable=False, index=True)
    collection = Column(String(64), nullable=False)
    doc_id = Column(String(255), nullable=False)
    data = Column(Text, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(BigInteger, nullable=False)   # epoch ms
    updated_at = Column(BigInteger, nullable=False)
    __table_args__ = (
        UniqueConstraint("tenant_id", "collection", "doc_id", name="uq_document_path"),
    )
