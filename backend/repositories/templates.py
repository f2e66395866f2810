"""
Template catalog repository backed by SQLAlchemy/SQLite.
"""
import uuid
from datetime import datetime
from typing import Callable, List, Optional
from sqlalchemy.orm import Session

from domain.models import Template, TextZone
from repositories.models import TemplateORM, TextZoneORM


def _value(enum_value) -> Optional[str]:
    return enum_value.value if enum_value is not None else None


def _zone_from_orm(orm: TextZoneORM) -> TextZone:
    return TextZone(
        id=orm.id,
        label=orm.label,
        element_index=orm.svg_element_index or 0,
        font_family=orm.font_family,
        font_size=orm.font_size,
        font_color=orm.font_color,
        font_weight=orm.font_weight,
        stroke=orm.stroke,
        stroke_width=orm.stroke_width,
        transform_matrix=orm.transform_matrix,
        bounding_width=orm.bounding_width,
        max_length=orm.max_length or 100,
        is_editable=bool(orm.is_editable),
        sort_order=orm.sort_order or 0,
    )


def _template_from_orm(orm: TemplateORM) -> Template:
    template = Template.from_dict(
        {
            "id": orm.id,
            "svg_path": orm.svg_path,
            "name": orm.name,
            "width": orm.width,
            "height": orm.height,
            "shape": orm.shape,
            "object_type": orm.object_type,
            "frame_style": orm.frame_style,
            "border_style": orm.border_style,
            "fill_style": orm.fill_style,
            "corner_style": orm.corner_style,
            "colors": orm.colors or [],
            "is_active": orm.is_active,
        }
    )
    template.text_zones = [_zone_from_orm(z) for z in orm.text_zones]
    return template


def _zone_to_orm(zone: TextZone, template_id: str) -> TextZoneORM:
    return TextZoneORM(
        id=zone.id or str(uuid.uuid4()),
        template_id=template_id,
        label=zone.label,
        svg_element_index=zone.element_index,
        font_family=zone.font_family,
        font_size=zone.font_size,
        font_color=zone.font_color,
        font_weight=zone.font_weight,
        stroke=zone.stroke,
        stroke_width=zone.stroke_width,
        transform_matrix=zone.transform_matrix,
        bounding_width=zone.bounding_width,
        max_length=zone.max_length,
        is_editable=zone.is_editable,
        sort_order=zone.sort_order,
    )


class TemplatesRepository:
    """Read path for the template catalog, plus create for seeding."""

    def list_active(self, session: Session) -> List[Template]:
        rows = (
            session.query(TemplateORM)
            .filter(TemplateORM.is_active.is_(True))
            .order_by(TemplateORM.created_at, TemplateORM.id)
            .all()
        )
        return [_template_from_orm(t) for t in rows]

    def get_template(self, session: Session, template_id: str) -> Optional[Template]:
        orm = session.get(TemplateORM, template_id)
        if not orm:
            return None
        return _template_from_orm(orm)

    def create_template(self, session: Session, template: Template) -> Template:
        orm = TemplateORM(
            id=template.id,
            name=template.name,
            svg_path=template.svg_path,
            width=template.width,
            height=template.height,
            shape=_value(template.shape),
            object_type=_value(template.object_type),
            frame_style=template.frame_style.value,
            border_style=template.border_style,
            fill_style=template.fill_style.value,
            corner_style=_value(template.corner_style),
            colors=list(template.colors),
            is_active=template.is_active,
            created_at=datetime.utcnow(),
        )
        orm.text_zones = [_zone_to_orm(z, template.id) for z in template.text_zones]
        session.add(orm)
        session.commit()
        session.refresh(orm)
        return _template_from_orm(orm)


class SqlTemplateCatalog:
    """TemplateCatalog over TemplatesRepository; opens a session per listing."""

    def __init__(self, session_factory: Callable[[], Session], repo: Optional[TemplatesRepository] = None):
        self.session_factory = session_factory
        self.repo = repo or TemplatesRepository()

    def list_active_templates(self) -> List[Template]:
        with self.session_factory() as session:
            return self.repo.list_active(session)
