"""User identity model."""

from bugfixer.models import db, iso, new_uuid, utcnow


class User(db.Model):
    """A registered account. Emails are stored lower-cased."""

    __tablename__ = "users"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    email = db.Column(db.String(255), nullable=False, unique=True, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    name = db.Column(db.String(255), nullable=False)
    avatar_url = db.Column(db.String(500), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "avatarUrl": self.avatar_url,
            "createdAt": iso(self.created_at),
        }

    def to_public_dict(self) -> dict:
        """Subset embedded in project, member and bug payloads."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "avatarUrl": self.avatar_url,
        }

    def __repr__(self):
        return f"<User {self.id} {self.email}>"
