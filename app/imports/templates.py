"""Mapping template storage."""

import logging
from typing import Protocol

from sqlalchemy import func
from sqlalchemy.orm import Session

from app.db.models import MappingTemplate, MatchStrategy
from app.imports.exceptions import TemplateNotFoundError
from app.imports.schemas import TargetField

logger = logging.getLogger(__name__)


class TemplateStore(Protocol):
    """Repository of saved mapping templates, scoped by employer."""

    def save(
        self,
        employer_id: str,
        name: str,
        mapping: dict[str, TargetField],
        strategy: MatchStrategy,
        description: str | None = None,
        date_format: str | None = None,
    ) -> MappingTemplate: ...

    def list(self, employer_id: str) -> list[MappingTemplate]: ...

    def get(self, employer_id: str, template_id: str) -> MappingTemplate: ...


def template_mapping(template: MappingTemplate) -> dict[str, TargetField]:
    """Read a template's stored mapping back as target fields."""
    return {column: TargetField(field) for column, field in template.column_mappings.items()}


class SqlTemplateStore:
    """TemplateStore backed by the mapping_templates table.

    Templates are insert-only. Creation order is kept in a per-employer
    sequence so listing is stable even when timestamps collide.
    """

    def __init__(self, db: Session):
        self.db = db

    def save(
        self,
        employer_id: str,
        name: str,
        mapping: dict[str, TargetField],
        strategy: MatchStrategy,
        description: str | None = None,
        date_format: str | None = None,
    ) -> MappingTemplate:
        """Save a new template.

        Args:
            employer_id: Owning employer.
            name: Display name (duplicates allowed).
            mapping: Column name -> target field.
            strategy: Employee match strategy.
            description: Optional description.
            date_format: Optional preferred date format.

        Returns:
            MappingTemplate: The stored template.
        """
        last = (
            self.db.query(func.max(MappingTemplate.sequence))
            .filter(MappingTemplate.employer_id == employer_id)
            .scalar()
        )
        template = MappingTemplate(
            employer_id=employer_id,
            sequence=(last or 0) + 1,
            name=name,
            description=description,
            column_mappings={column: TargetField(field).value for column, field in mapping.items()},
            match_strategy=strategy,
            date_format=date_format,
        )
        self.db.add(template)
        self.db.commit()
        self.db.refresh(template)

        logger.info(f"Saved mapping template {template.id} ('{name}') for employer {employer_id}")
        return template

    def list(self, employer_id: str) -> list[MappingTemplate]:
        """List an employer's templates in creation order.

        Two saves racing for the same sequence number fall back to creation
        time, then id, so the order is still stable.
        """
        return (
            self.db.query(MappingTemplate)
            .filter(MappingTemplate.employer_id == employer_id)
            .order_by(MappingTemplate.sequence, MappingTemplate.created_at, MappingTemplate.id)
            .all()
        )

    def get(self, employer_id: str, template_id: str) -> MappingTemplate:
        """Get a template by id.

        Raises:
            TemplateNotFoundError: If the template is not in the employer scope.
        """
        template = (
            self.db.query(MappingTemplate)
            .filter(
                MappingTemplate.id == template_id,
                MappingTemplate.employer_id == employer_id,
            )
            .first()
        )
        if not template:
            raise TemplateNotFoundError(template_id)
        return template
