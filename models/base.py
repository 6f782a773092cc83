# models/base.py
import enum
import re
from typing import Type

from sqlalchemy import Enum
from sqlalchemy.orm import DeclarativeBase, declared_attr


class Base(DeclarativeBase):
     """
     Base class for all SQLAlchemy models.
     Provides common configuration and mixins.
     """

     @declared_attr.directive
     def __tablename__(cls) -> str:
          """
          Automatically generate table name from class name.
          Example: PaymentMethod -> payment_methods
          """
          name = re.sub(r'(?<!^)(?=[A-Z])', '_', cls.__name__).lower()
          # Pluralize (simple version)
          if name.endswith('y'):
               return name[:-1] + 'ies'
          elif name.endswith('s'):
               return name + 'es'
          return name + 's'


def value_enum(enum_cls: Type[enum.Enum], name: str) -> Enum:
     """
     Column type that stores an enum's lowercase *values* ("active")
     rather than its member names ("ACTIVE").
     """
     return Enum(
          enum_cls,
          name=name,
          create_constraint=True,
          values_callable=lambda members: [m.value for m in members],
          validate_strings=True,
     )
