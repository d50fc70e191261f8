import enum

from library_api.extensions import db
from library_api.utils.clock import utcnow


class Role(str, enum.Enum):
    ADMIN = "Admin"
    USER = "User"

    @property
    def can_manage_borrows(self) -> bool:
        """Admins may return and list any borrow, not only their own."""
        return self is Role.ADMIN

    @property
    def can_manage_catalog(self) -> bool:
        return self is Role.ADMIN


class User(db.Model):
    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    library_id = db.Column(db.String(32), unique=True, nullable=True, index=True)

    role = db.Column(
        db.Enum(Role, native_enum=False, length=16, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=Role.USER,
    )

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)

    def to_dict(self):
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "library_id": self.library_id,
            "role": self.role.value if self.role else None,
        }
