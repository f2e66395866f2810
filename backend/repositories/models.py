"""
SQLAlchemy ORM models for the template catalog.
"""
from datetime import datetime
from sqlalchemy import Boolean, Column, DateTime, Float, ForeignKey, Integer, JSON, String
from sqlalchemy.orm import relationship

from db import Base


class TemplateORM(Base):
    __tablename__ = "templates"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    svg_path = Column(String, nullable=False)
    width = Column(Float, nullable=True)
    height = Column(Float, nullable=True)
    shape = Column(String, nullable=True)
    object_type = Column(String, nullable=True)
    frame_style = Column(String, nullable=False, default="single")
    border_style = Column(String, nullable=True)
    fill_style = Column(String, nullable=False, default="filled")
    corner_style = Column(String, nullable=True)
    colors = Column(JSON, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    text_zones = relationship(
        "TextZoneORM",
        back_populates="template",
        cascade="all, delete-orphan",
        order_by="TextZoneORM.sort_order",
    )


class TextZoneORM(Base):
    __tablename__ = "text_zones"

    id = Column(String, primary_key=True, index=True)
    template_id = Column(String, ForeignKey("templates.id", ondelete="CASCADE"), nullable=False, index=True)
    label = Column(String, nullable=False)
    svg_element_index = Column(Integer, nullable=False, default=0)
    font_family = Column(String, nullable=True)
    font_size = Column(Float, nullable=True)
    font_color = Column(String, nullable=True)
    font_weight = Column(String, nullable=True)
    stroke = Column(String, nullable=True)
    stroke_width = Column(Float, nullable=True)
    transform_matrix = Column(String, nullable=True)
    bounding_width = Column(Float, nullable=True)
    max_length = Column(Integer, nullable=False, default=100)
    is_editable = Column(Boolean, nullable=False, default=True)
    sort_order = Column(Integer, nullable=False, default=0)

    template = relationship("TemplateORM", back_populates="text_zones")
