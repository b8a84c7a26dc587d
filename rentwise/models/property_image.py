from rentwise.extensions import db
from rentwise.models.base import PKType, TimestampMixin


class PropertyImage(TimestampMixin, db.Model):
    __tablename__ = "property_images"

    id = db.Column(PKType, primary_key=True, autoincrement=True)
    property_id = db.Column(PKType, db.ForeignKey("properties.id", ondelete="CASCADE"), nullable=False, index=True)
    image_path = db.Column(db.String(500), nullable=False)

    property = db.relationship("Property", back_populates="images")
