from datetime import datetime, timezone

from moveit.extensions import db


def _utcnow():
    return datetime.now(timezone.utc)


class StoreDocument(db.Model):
    """One top-level collection of the operations store, kept as JSON."""

    __tablename__ = "store_document"

    key = db.Column(db.String(64), primary_key=True)
    payload = db.Column(db.JSON, nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    def __repr__(self) -> str:
        return f"<StoreDocument {self.key}>"
