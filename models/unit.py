# models/unit.py
import enum
from sqlalchemy import Column, Integer, String, Numeric, DateTime, func
from sqlalchemy.orm import relationship
from .base import Base, value_enum


class UnitStatus(str, enum.Enum):
     VACANT = "vacant"
     OCCUPIED = "occupied"
     MAINTENANCE = "maintenance"


class Unit(Base):
     """
     Unit model - a rentable unit within a property.
     Property CRUD lives outside this service; only the id is kept.
     """
     __tablename__ = "units"

     id = Column(Integer, primary_key=True, autoincrement=True)
     property_id = Column(Integer, nullable=True, index=True)
     unit_number = Column(String(50), nullable=False)
     monthly_rent = Column(Numeric(10, 2), nullable=True)
     status = Column(value_enum(UnitStatus, "unit_status"), default=UnitStatus.VACANT, nullable=False)

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)
     updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)

     # Relationships
     leases = relationship("Lease", back_populates="unit")

     def __repr__(self):
          return f"<Unit(id={self.id}, unit_number='{self.unit_number}', status='{self.status.value}')>"
