"""
Database models -- SQLAlchemy ORM definitions.
The only locally owned table is the city filter registry; packages and
itineraries belong to the upstream admin API.
"""

from sqlalchemy import Boolean, Column, Integer, String, UniqueConstraint
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class CityFilter(Base):
    """
    A city facet shown on a destination page.
    Counts are not stored; they are computed from the live package list.
    """
    __tablename__ = "city_filters"
    __table_args__ = (
        UniqueConstraint("destination", "name", name="uq_city_filters_destination_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    destination = Column(String(64), nullable=False, index=True)
    name = Column(String(128), nullable=False)
    is_active = Column(Boolean, nullable=False, default=True)
    order = Column("sort_order", Integer, nullable=False, default=0)

    def to_dict(self, count: int = 0) -> dict:
        return {"id": self.id, "name": self.name, "count": count, "order": self.order}
