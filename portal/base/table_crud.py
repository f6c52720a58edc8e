"""Field-gated CRUD over a single table, driven by a per-table configuration."""
from flask import jsonify
from sqlalchemy import Boolean, Integer, Float, Date, DateTime, JSON, String, Text, inspect
from sqlalchemy.exc import SQLAlchemyError
from shared.validation import Validator, ValidationError
from ..models import db
from ..utils import row_to_dict, api_error
import logging
from typing import Optional, Callable, Dict, List, Any


class TableCRUD:
    """CRUD operations for one table behind the admin CRUD endpoint.

    Only ``allowed_fields`` are ever written or filtered on; everything else in
    a payload is dropped. Values are coerced to their column types before they
    reach the session, so a bad date or number is a 400 rather than a database
    error.

    Usage:
        crud = TableCRUD(
            model=Phase,
            allowed_fields=['project_id', 'title', 'phase_number'],
            required_for_create=['project_id', 'title'],
            order_by=('phase_number', True),
            defaults={'phase_number': 1},
        )
    """

    def __init__(
        self,
        model: type,
        allowed_fields: List[str],
        required_for_create: List[str],
        order_by: tuple = ('created_at', False),
        defaults: Optional[Dict[str, Any]] = None,
        pre_create_hook: Optional[Callable[[Dict], Dict]] = None,
    ):
        """Initialize table CRUD.

        Args:
            model: SQLAlchemy model class
            allowed_fields: Column names a client may write or filter on
            required_for_create: Column names that must be present on create;
                names ending in _id must be valid ids
            order_by: (column name, ascending) for list reads
            defaults: Values applied on create when the client omits them
            pre_create_hook: Optional function run on the sanitized create
                data; takes and returns a dict
        """
        self.model = model
        self.allowed_fields = list(allowed_fields)
        self.required_for_create = list(required_for_create)
        self.order_by = order_by
        self.defaults = defaults or {}
        self.pre_create_hook = pre_create_hook
        self.table = model.__tablename__
        self.logger = logging.getLogger(f"{__name__}.{self.table}")

        mapper = inspect(model)
        self._columns = {column.name: column for column in model.__table__.columns}
        # column name -> mapped attribute key (activity_log.metadata maps to .meta)
        self._attributes = {
            column.name: mapper.get_property_by_column(column).key
            for column in model.__table__.columns
        }

    # ------------------------------------------------------------------
    # Validation and coercion
    # ------------------------------------------------------------------

    def validate_required(self, data):
        for field in self.required_for_create:
            value = data.get(field)
            if field.endswith('_id'):
                if not Validator.is_valid_id(value):
                    raise ValidationError(f"Valid {field} is required")
            elif value is None or (isinstance(value, str) and not value.strip()):
                raise ValidationError(f"{field} is required")
            elif not isinstance(value, (str, int, float)):
                raise ValidationError(f"{field} is required")

    def sanitize(self, data, skip_null=False):
        """Drop fields that are not allowed and coerce the rest to column types.

        With skip_null, an explicit null is treated as an omitted field so that
        create defaults still apply.
        """
        return {
            field: self.coerce(field, data[field])
            for field in self.allowed_fields
            if field in data and not (skip_null and data[field] is None)
        }

    def coerce(self, field, value):
        if value is None:
            if not self._columns[field].nullable:
                raise ValidationError(f"{field} cannot be null")
            return None
        column_type = self._columns[field].type

        if isinstance(column_type, JSON):
            return value
        if isinstance(column_type, DateTime):
            return Validator.parse_datetime(value, field)
        if isinstance(column_type, Date):
            return Validator.parse_date(value, field)
        if isinstance(column_type, Boolean):
            if isinstance(value, bool):
                return value
            if value in (0, 1):
                return bool(value)
            if isinstance(value, str) and value.lower() in ('true', 'false'):
                return value.lower() == 'true'
            raise ValidationError(f"{field} must be a boolean")
        if isinstance(column_type, Integer):
            if isinstance(value, bool):
                raise ValidationError(f"{field} must be an integer")
            try:
                return int(value)
            except (TypeError, ValueError):
                raise ValidationError(f"{field} must be an integer")
        if isinstance(column_type, Float):
            if isinstance(value, bool):
                raise ValidationError(f"{field} must be a number")
            try:
                return float(value)
            except (TypeError, ValueError):
                raise ValidationError(f"{field} must be a number")
        if isinstance(column_type, (String, Text)):
            if not isinstance(value, str):
                raise ValidationError(f"{field} must be a string")
            return value
        return value

    def validate_email(self, data):
        if data.get('email') and not Validator.is_valid_email(data['email']):
            raise ValidationError('Invalid email format')

    def to_attributes(self, data):
        return {self._attributes[name]: value for name, value in data.items()}

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def read(self, resource_id=None, filters=None):
        """Return one row by id, or every row matching equality filters."""
        try:
            if resource_id:
                resource = db.session.get(self.model, resource_id)
                if resource is None:
                    return api_error('Record not found', 404)
                return jsonify({'data': row_to_dict(resource)})

            query = db.session.query(self.model)
            for field, value in (filters or {}).items():
                if field == 'id':
                    query = query.filter(self.model.id == value)
                elif field in self.allowed_fields:
                    column = getattr(self.model, self._attributes[field])
                    query = query.filter(column == self.coerce(field, value))

            column_name, ascending = self.order_by
            column = getattr(self.model, self._attributes[column_name])
            query = query.order_by(column.asc() if ascending else column.desc())

            return jsonify({'data': [row_to_dict(row) for row in query.all()]})

        except ValidationError as e:
            return api_error(str(e), 400)
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to read {self.table}: {e}", exc_info=True)
            db.session.rollback()
            return api_error(str(e), 500, 'error')

    def create(self, data):
        try:
            self.validate_required(data)
            self.validate_email(data)
            values = self.sanitize(data, skip_null=True)

            for field, default in self.defaults.items():
                if values.get(field) is None:
                    values[field] = default() if callable(default) else default

            if self.pre_create_hook:
                values = self.pre_create_hook(values)

            resource = self.model(**self.to_attributes(values))
            db.session.add(resource)
            db.session.commit()

            self.logger.info(f"Created {self.table} row {resource.id}")
            return jsonify({'data': row_to_dict(resource)}), 201

        except ValidationError as e:
            self.logger.warning(f"Validation error creating {self.table}: {e}")
            return api_error(str(e), 400)
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to create {self.table} row: {e}", exc_info=True)
            db.session.rollback()
            return api_error(str(e), 500, 'error')

    def update(self, resource_id, data):
        try:
            if not Validator.is_valid_id(resource_id):
                raise ValidationError('Valid id is required for update')
            self.validate_email(data)
            values = self.sanitize(data)

            resource = db.session.get(self.model, resource_id)
            if resource is None:
                return api_error('Record not found', 404)

            for key, value in self.to_attributes(values).items():
                setattr(resource, key, value)
            db.session.commit()

            self.logger.info(f"Updated {self.table} row {resource_id}: {sorted(values)}")
            return jsonify({'data': row_to_dict(resource)})

        except ValidationError as e:
            self.logger.warning(f"Validation error updating {self.table}: {e}")
            return api_error(str(e), 400)
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to update {self.table} row {resource_id}: {e}", exc_info=True)
            db.session.rollback()
            return api_error(str(e), 500, 'error')

    def delete(self, resource_id):
        try:
            if not Validator.is_valid_id(resource_id):
                raise ValidationError('Valid id is required for delete')

            resource = db.session.get(self.model, resource_id)
            if resource is not None:
                db.session.delete(resource)
                db.session.commit()
                self.logger.info(f"Deleted {self.table} row {resource_id}")
            return jsonify({'success': True})

        except ValidationError as e:
            return api_error(str(e), 400)
        except SQLAlchemyError as e:
            self.logger.error(f"Failed to delete {self.table} row {resource_id}: {e}", exc_info=True)
            db.session.rollback()
            return api_error(str(e), 500, 'error')
