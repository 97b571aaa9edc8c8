import uuid
from datetime import datetime
from sqlalchemy import Column, String, Text, Float, DateTime, ForeignKey, JSON
from db.database import Base


class PackageRecord(Base):
    __tablename__ = "packages"

    name = Column(String, primary_key=True)
    description = Column(Text, nullable=True)
    idea_prompt = Column(Text, nullable=True)
    functions = Column(JSON, default=list)  # ordered manifest of generated function names
    package_dir = Column(Text, nullable=False)
    state = Column(String(20), default="pending")
    last_completed_state = Column(String(20), nullable=True)
    remote_url = Column(Text, nullable=True)
    error = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)


class StepLog(Base):
    __tablename__ = "step_logs"

    id = Column(String, primary_key=True, default=lambda: str(uuid.uuid4()))
    package_name = Column(String, ForeignKey("packages.name", ondelete="CASCADE"), nullable=False)
    step = Column(String(20), nullable=False)
    status = Column(String(20), nullable=False)
    output = Column(Text, nullable=True)
    error_message = Column(Text, nullable=True)
    execution_time = Column(Float, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)
