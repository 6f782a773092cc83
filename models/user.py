# models/user.py
import enum
from sqlalchemy import Column, Integer, String, DateTime, func
from sqlalchemy.orm import relationship
from .base import Base, value_enum


class UserRole(str, enum.Enum):
     TENANT = "tenant"
     ADMIN = "admin"


class User(Base):
     """
     Application user. Tenants own leases, payment methods and auto-pay
     schedules; admins manage properties and payment oversight.
     """
     __tablename__ = "users"

     id = Column(Integer, primary_key=True, autoincrement=True)
     first_name = Column(String(100), nullable=False)
     last_name = Column(String(100), nullable=False)
     email = Column(String(255), nullable=False, unique=True)
     phone = Column(String(50), nullable=True)
     role = Column(value_enum(UserRole, "user_role"), default=UserRole.TENANT, nullable=False)

     # Timestamps
     created_at = Column(DateTime, server_default=func.now(), nullable=False)

     # Relationships
     leases = relationship("Lease", back_populates="tenant")
     payment_methods = relationship("PaymentMethod", back_populates="user")

     def __repr__(self):
          return f"<User(id={self.id}, email='{self.email}', role='{self.role.value}')>"

     @property
     def full_name(self) -> str:
          return f"{self.first_name} {self.last_name}"
