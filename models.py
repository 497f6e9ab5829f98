from sqlalchemy import (
    JSON,
    BigInteger,
    Column,
    DateTime,
    Float,
    Index,
    Integer,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import declarative_base
from sqlalchemy.sql import func
import uuid_utils
import uuid


def generate_uuid7():
    """Generate UUIDv7 and convert to standard Python UUID"""
    uuid7_obj = uuid_utils.uuid7()
    return uuid.UUID(str(uuid7_obj))


# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")
# SQLite only autoincrements INTEGER PRIMARY KEY columns
MessageIdType = BigInteger().with_variant(Integer(), "sqlite")

Base = declarative_base()


class Video(Base):
    __tablename__ = 'videos'

    id = Column(Uuid(as_uuid=True), primary_key=True, default=generate_uuid7)
    video_url = Column(String(2000))
    platform = Column(String(32), index=True)
    normalized_url = Column(String(2000), index=True)
    transcript_text = Column(Text)
    transcript_preview = Column(String(500))
    transcript_url = Column(String(2000))
    title = Column(String(500))
    creator = Column(String(300))
    published = Column(String(64))
    summary = Column(Text)
    sentiment = Column(String(16))
    tags = Column(JSONType)
    categories = Column(JSONType)
    embedding = Column(JSONType)
    venue = Column(String(300))
    address = Column(String(500))
    city = Column(String(200))
    neighborhood = Column(String(200))
    price = Column(String(100))
    lat = Column(Float)
    lng = Column(Float)
    processing_status = Column(String(16), index=True)
    processing_error = Column(Text)
    created_at = Column(DateTime, default=func.now(), nullable=False)
    updated_at = Column(DateTime, default=func.now(), onupdate=func.now(), nullable=False)

    def __repr__(self):
        return (
            f"<Video(id={self.id}, platform='{self.platform}', "
            f"status='{self.processing_status}', url='{self.video_url}')>"
        )


class QueueMessage(Base):
    __tablename__ = 'queue_messages'

    id = Column(MessageIdType, primary_key=True, autoincrement=True)
    queue_name = Column(String(100), nullable=False)
    message = Column(JSONType, nullable=False)
    read_ct = Column(Integer, nullable=False, default=0)
    enqueued_at = Column(DateTime, nullable=False)
    vt = Column(DateTime, nullable=False)
    archived_at = Column(DateTime)

    # Lease scans filter on queue, liveness and visibility, then order by id
    __table_args__ = (
        Index('ix_queue_messages_queue_live_vt', 'queue_name', 'archived_at', 'vt'),
    )

    def __repr__(self):
        return (
            f"<QueueMessage(id={self.id}, queue='{self.queue_name}', "
            f"read_ct={self.read_ct}, archived={self.archived_at is not None})>"
        )
