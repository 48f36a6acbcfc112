"""Generic, allow-listed access to the scheduling relations.

Table names only ever come from ``ENTITIES`` and column names are checked
against the table before use; values always travel as bound parameters.
"""
from __future__ import annotations

from datetime import date, datetime
from typing import Any, Mapping

from flask import current_app
from sqlalchemy import Boolean, DateTime, Integer, and_, delete, func, insert, select, update
from sqlalchemy.dialects import mysql, postgresql, sqlite

from . import db
from .conflicts import ensure_rooms_available
from .context import RequestContext, Role
from .database import transaction
from .decorations import decoration_events
from .entities import (
    ENROLLMENTS,
    INSTRUCTORS,
    MODULE_OPTIONS,
    RESERVATIONS,
    SESSIONS,
    STUDENTS,
    EntitySpec,
    get_entity,
    is_identifier,
)
from .errors import AuthorizationFailure, NotFound, ValidationFailure
from .events import build_events, build_module_options
from .filters import FilterCriteria, filter_events
from .models import (
    Enrollment,
    InstructorModule,
    Module,
    ModuleAssociation,
    Reservation,
    Session,
)


class Gateway:
    """Create/read/update/delete over the allow-listed relations for one request."""

    def __init__(self, ctx: RequestContext) -> None:
        self.ctx = ctx

    # -- authorization -----------------------------------------------------

    def _authorize_read(self, spec: EntitySpec) -> None:
        actor = self.ctx.actor
        if actor.is_forbidden:
            raise AuthorizationFailure("Accès refusé : utilisateur non enregistré")
        if actor.role not in spec.readable_by:
            raise AuthorizationFailure(f"Lecture de {spec.name} non autorisée")

    def _authorize_write(self, spec: EntitySpec) -> None:
        actor = self.ctx.actor
        if actor.is_forbidden:
            raise AuthorizationFailure("Accès refusé : utilisateur non enregistré")
        if actor.role is Role.STUDENT:
            current_app.logger.info("Student %s attempted to modify %s", actor.actor_id, spec.name)
            raise AuthorizationFailure("Les élèves ne peuvent pas modifier le planning")
        if actor.role is not Role.ADMIN:
            raise AuthorizationFailure("Action réservée aux administrateurs")
        if spec.is_virtual:
            raise ValidationFailure(f"L'entité {spec.name} est en lecture seule")

    # -- payload coercion ----------------------------------------------------

    def _coerce(self, spec: EntitySpec, column_name: str, value: Any) -> Any:
        column = spec.table.c[column_name]
        if value is None:
            if not column.nullable:
                raise ValidationFailure(f"Le champ {column_name} est requis")
            return None
        if isinstance(column.type, Boolean):
            if isinstance(value, bool):
                return value
            if value in (0, 1, "0", "1"):
                return bool(int(value))
            if isinstance(value, str) and value.lower() in ("true", "false"):
                return value.lower() == "true"
            raise ValidationFailure(f"Valeur booléenne invalide pour {column_name}")
        if isinstance(column.type, Integer):
            if isinstance(value, bool):
                raise ValidationFailure(f"Valeur entière invalide pour {column_name}")
            try:
                return int(value)
            except (TypeError, ValueError) as exc:
                raise ValidationFailure(f"Valeur entière invalide pour {column_name}") from exc
        if isinstance(column.type, DateTime):
            return self.ctx.to_storage(value)
        if isinstance(value, int) and not isinstance(value, bool):
            value = str(value)
        if not isinstance(value, str):
            raise ValidationFailure(f"Valeur texte invalide pour {column_name}")
        allowed = spec.choices.get(column_name)
        if allowed is not None and value not in allowed:
            raise ValidationFailure(
                f"Valeur invalide pour {column_name} : {value} ({', '.join(allowed)})"
            )
        return value

    def _values(self, spec: EntitySpec, payload: Mapping[str, Any]) -> dict[str, Any]:
        unknown = [key for key in payload if key not in spec.writable]
        if unknown:
            raise ValidationFailure(f"Champ(s) inconnu(s) pour {spec.name} : {', '.join(unknown)}")
        return {key: self._coerce(spec, key, value) for key, value in payload.items()}

    @staticmethod
    def _require_payload(payload: Any) -> Mapping[str, Any]:
        if not isinstance(payload, Mapping):
            raise ValidationFailure("Le champ 'payload' est requis")
        return payload

    def _required_columns(self, spec: EntitySpec) -> list[str]:
        required = []
        for column in spec.table.columns:
            if spec.generated_key and column.name == spec.key:
                continue
            if column.nullable or column.default is not None or column.server_default is not None:
                continue
            required.append(column.name)
        return required

    def _where(self, spec: EntitySpec, payload: Mapping[str, Any]):
        table = spec.table
        clauses = []
        for key, value in payload.items():
            if key not in table.c:
                raise ValidationFailure(f"Champ inconnu pour {spec.name} : {key}")
            clauses.append(table.c[key] == self._coerce(spec, key, value))
        return and_(*clauses)

    # -- list ----------------------------------------------------------------

    def list(self, entity: str, options: Mapping[str, Any] | None = None) -> list[dict[str, Any]]:
        spec = get_entity(entity)
        self._authorize_read(spec)
        options = options or {}

        if spec.name == SESSIONS:
            return self._list_sessions(options)
        if spec.name == MODULE_OPTIONS:
            return build_module_options(self.ctx)

        table = spec.table
        rows = db.session.execute(select(table).order_by(*table.primary_key.columns)).mappings()
        records = [self._serialise(row) for row in rows]
        if spec.name == STUDENTS:
            self._attach_enrollments(records)
        elif spec.name == INSTRUCTORS:
            self._attach_owned_modules(records)
        return records

    def _serialise(self, row: Mapping[str, Any]) -> dict[str, Any]:
        record = {}
        for key, value in row.items():
            record[key] = self.ctx.for_display(value) if isinstance(value, datetime) else value
        return record

    def _list_sessions(self, options: Mapping[str, Any]) -> list[dict[str, Any]]:
        events = build_events(self.ctx)
        criteria = FilterCriteria.from_payload(options.get("filters"))
        events = filter_events(events, criteria, self.ctx.actor)
        if options.get("decorations"):
            year = _decoration_year(options.get("year"))
            source = current_app.config.get("HOLIDAY_SOURCE")
            decorations = decoration_events(year, source)
            events.extend(filter_events(decorations, criteria, self.ctx.actor))
        return list(events)

    def _attach_enrollments(self, records: list[dict[str, Any]]) -> None:
        names = dict(db.session.execute(select(Module.module_id, Module.name)).all())
        enrollments = {
            enrollment.student_id: enrollment
            for enrollment in db.session.scalars(select(Enrollment))
        }
        for record in records:
            enrollment = enrollments.get(record["student_id"])
            major = enrollment.major_module_id if enrollment else None
            minor = enrollment.minor_module_id if enrollment else None
            record["major_module_id"] = major
            record["minor_module_id"] = minor
            record["major_module_name"] = names.get(major)
            record["minor_module_name"] = names.get(minor)

    def _attach_owned_modules(self, records: list[dict[str, Any]]) -> None:
        owned: dict[int, list[int]] = {}
        for instructor_id, module_id in db.session.execute(
            select(InstructorModule.instructor_id, InstructorModule.module_id).order_by(
                InstructorModule.module_id
            )
        ):
            owned.setdefault(instructor_id, []).append(module_id)
        for record in records:
            record["module_ids"] = owned.get(record["instructor_id"], [])

    # -- insert ----------------------------------------------------------------

    def insert(self, entity: str, payload: Any) -> int | None:
        spec = get_entity(entity)
        self._authorize_write(spec)
        payload = self._require_payload(payload)
        values = self._values(spec, payload)
        missing = [name for name in self._required_columns(spec) if values.get(name) is None]
        if missing:
            raise ValidationFailure(f"Champ(s) requis manquant(s) : {', '.join(missing)}")

        with transaction():
            if spec.name == SESSIONS:
                _check_range(values["starts_at"], values["ends_at"])
            elif spec.name == RESERVATIONS:
                self._check_reservation(values["session_id"], values["room_id"])
            elif spec.name == ENROLLMENTS:
                _check_module_pair(values["major_module_id"], values["minor_module_id"])
                self._upsert_enrollment(spec, values)
                return values["student_id"]

            result = db.session.execute(insert(spec.table).values(**values))
            inserted_id = result.inserted_primary_key[0] if spec.generated_key else None
        current_app.logger.info("Inserted into %s (%s)", spec.name, inserted_id)
        return inserted_id

    def _check_reservation(self, session_id: int, room_id: int) -> None:
        session = db.session.get(Session, session_id)
        if session is None:
            raise NotFound(f"Séance {session_id} introuvable")
        ensure_rooms_available(
            [room_id],
            session.starts_at,
            session.ends_at,
            exclude_session_id=session_id,
            lock=True,
        )

    def _upsert_enrollment(self, spec: EntitySpec, values: dict[str, Any]) -> None:
        table = spec.table
        dialect = db.session.get_bind().dialect.name
        changes = {
            "major_module_id": values["major_module_id"],
            "minor_module_id": values["minor_module_id"],
        }
        if dialect in ("sqlite", "postgresql"):
            builder = sqlite.insert if dialect == "sqlite" else postgresql.insert
            stmt = builder(table).values(**values)
            stmt = stmt.on_conflict_do_update(index_elements=[table.c.student_id], set_=changes)
        elif dialect in ("mysql", "mariadb"):
            stmt = mysql.insert(table).values(**values).on_duplicate_key_update(**changes)
        else:
            existing = db.session.get(Enrollment, values["student_id"])
            if existing is None:
                stmt = insert(table).values(**values)
            else:
                stmt = (
                    update(table)
                    .where(table.c.student_id == values["student_id"])
                    .values(**changes)
                )
        db.session.execute(stmt)

    # -- update ----------------------------------------------------------------

    def update(self, entity: str, payload: Any) -> None:
        spec = get_entity(entity)
        self._authorize_write(spec)
        payload = self._require_payload(payload)

        key = next((name for name in payload if is_identifier(name)), None)
        if key is None or key not in spec.table.c:
            raise ValidationFailure("La mise à jour requiert un identifiant (champ *_id)")
        key_value = self._coerce(spec, key, payload[key])
        changes = {name: value for name, value in payload.items() if name != key}
        if not changes:
            raise ValidationFailure("Aucun champ à mettre à jour")
        values = self._values(spec, changes)

        table = spec.table
        with transaction():
            self._check_single_link(spec, key, key_value, values)
            if spec.name == SESSIONS:
                self._check_session_move(key_value, values)
            elif spec.name == RESERVATIONS and key == "session_id" and "room_id" in values:
                self._check_reservation(key_value, values["room_id"])
            elif spec.name == RESERVATIONS and key == "room_id" and "session_id" in values:
                self._check_reservation(values["session_id"], key_value)
            elif spec.name == ENROLLMENTS:
                current = db.session.get(Enrollment, key_value) if key == "student_id" else None
                if current is not None:
                    _check_module_pair(
                        values.get("major_module_id", current.major_module_id),
                        values.get("minor_module_id", current.minor_module_id),
                    )
            result = db.session.execute(
                update(table).where(table.c[key] == key_value).values(**values)
            )
            if result.rowcount == 0:
                raise NotFound(f"Aucune ligne {spec.name} avec {key}={key_value}")
        current_app.logger.info("Updated %s %s=%s", spec.name, key, key_value)

    def _check_single_link(
        self, spec: EntitySpec, key: str, key_value: Any, values: dict[str, Any]
    ) -> None:
        """Refuse to rewrite a composite key on more than one link row at once."""

        table = spec.table
        key_columns = {column.name for column in table.primary_key.columns}
        if len(key_columns) < 2 or not key_columns.intersection(values):
            return
        matched = db.session.scalar(
            select(func.count()).select_from(table).where(table.c[key] == key_value)
        )
        if matched > 1:
            hint = " ; utiliser l'action reschedule" if spec.name == RESERVATIONS else ""
            raise ValidationFailure(
                f"{matched} lignes {spec.name} correspondent à {key}={key_value}{hint}"
            )

    def _check_session_move(self, session_id: int, values: dict[str, Any]) -> None:
        if "starts_at" not in values and "ends_at" not in values:
            return
        session = db.session.get(Session, session_id)
        if session is None:
            raise NotFound(f"Séance {session_id} introuvable")
        starts_at = values.get("starts_at", session.starts_at)
        ends_at = values.get("ends_at", session.ends_at)
        _check_range(starts_at, ends_at)
        room_ids = db.session.scalars(
            select(Reservation.room_id).where(Reservation.session_id == session_id)
        ).all()
        ensure_rooms_available(
            room_ids, starts_at, ends_at, exclude_session_id=session_id, lock=True
        )

    # -- delete ----------------------------------------------------------------

    def delete(self, entity: str, payload: Any) -> int:
        spec = get_entity(entity)
        self._authorize_write(spec)
        if not isinstance(payload, Mapping) or not payload:
            raise ValidationFailure("La suppression requiert au moins un critère")
        where = self._where(spec, payload)

        table = spec.table
        with transaction():
            if spec.dependents:
                key_column = table.c[spec.key]
                ids = db.session.scalars(select(key_column).where(where)).all()
                if ids:
                    for model, column_name in spec.dependents:
                        dependent = model.__table__
                        db.session.execute(
                            delete(dependent).where(dependent.c[column_name].in_(ids))
                        )
            result = db.session.execute(delete(table).where(where))
        current_app.logger.info("Deleted %s row(s) from %s", result.rowcount, spec.name)
        return result.rowcount


def _check_range(starts_at: datetime, ends_at: datetime) -> None:
    if ends_at <= starts_at:
        raise ValidationFailure("L'heure de fin doit être postérieure à l'heure de début")


def _check_module_pair(major_id: int, minor_id: int) -> None:
    """Reject a major/minor pair absent from a non-empty association list."""

    has_associations = db.session.scalar(select(ModuleAssociation.association_id).limit(1))
    if has_associations is None:
        return
    known = db.session.scalars(
        select(ModuleAssociation.minor_module_id).where(
            ModuleAssociation.major_module_id == major_id
        )
    ).all()
    if minor_id not in known:
        raise ValidationFailure("Association majeur/mineur non autorisée")


def _decoration_year(raw: Any) -> int:
    if raw is None or raw == "":
        return date.today().year
    if isinstance(raw, bool):
        raise ValidationFailure(f"Année invalide : {raw}")
    try:
        year = int(raw)
    except (TypeError, ValueError) as exc:
        raise ValidationFailure(f"Année invalide : {raw}") from exc
    if not 1 <= year <= 9999:
        raise ValidationFailure(f"Année invalide : {raw}")
    return year
