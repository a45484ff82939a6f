"""Public widget capability token (one per project)."""

from bugfixer.models import db, iso, new_uuid, utcnow


class WidgetToken(db.Model):
    __tablename__ = "widget_tokens"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    allowed_origins = db.Column(db.JSON, nullable=False, default=list)
    enabled = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    def to_dict(self, embed_snippet: str | None = None) -> dict:
        return {
            "id": self.id,
            "token": self.token,
            "allowedOrigins": list(self.allowed_origins or []),
            "enabled": self.enabled,
            "embedSnippet": embed_snippet,
            "createdAt": iso(self.created_at),
        }
