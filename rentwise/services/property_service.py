from decimal import Decimal, InvalidOperation

from flask import current_app
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import joinedload

from rentwise.errors import ConflictError, ForbiddenError, InternalError, InvalidArgumentError, NotFoundError
from rentwise.extensions import db
from rentwise.models import Booking, Notification, Payment, Property, PropertyImage
from rentwise.services.file_service import FileService

EDITABLE_FIELDS = ("title", "description", "city", "region", "street")


class PropertyService:
    @staticmethod
    def _parse_price(value):
        try:
            price = Decimal(str(value)).quantize(Decimal("0.01"))
        except (InvalidOperation, ValueError) as exc:
            raise InvalidArgumentError("Price must be a positive number.") from exc
        if price <= 0:
            raise InvalidArgumentError("Price must be a positive number.")
        return price

    @staticmethod
    def _parse_rooms(value):
        try:
            rooms = int(value if value is not None else 1)
        except (TypeError, ValueError) as exc:
            raise InvalidArgumentError("Rooms count must be a positive integer.") from exc
        if rooms <= 0:
            raise InvalidArgumentError("Rooms count must be a positive integer.")
        return rooms

    @staticmethod
    def create_property(owner_id, payload):
        title = (payload.get("title") or "").strip()
        if not title or payload.get("price") is None:
            raise InvalidArgumentError("Property title and price are required.")

        property_ = Property(
            owner_id=owner_id,
            title=title,
            description=(payload.get("description") or "").strip() or None,
            price=PropertyService._parse_price(payload.get("price")),
            rooms_count=PropertyService._parse_rooms(payload.get("rooms_count")),
            city=(payload.get("city") or "").strip() or None,
            region=(payload.get("region") or "").strip() or None,
            street=(payload.get("street") or "").strip() or None,
            status=Property.STATUS_PENDING,
            is_paid=False,
        )
        db.session.add(property_)
        db.session.commit()
        return property_

    @staticmethod
    def list_available(page=1, per_page=12):
        query = (
            Property.query.options(joinedload(Property.owner))
            .filter(Property.status == Property.STATUS_AVAILABLE)
            .order_by(Property.created_at.desc(), Property.id.desc())
        )
        return query.paginate(page=page, per_page=per_page, error_out=False)

    @staticmethod
    def list_for_owner(owner_id):
        return (
            Property.query.filter_by(owner_id=owner_id)
            .order_by(Property.created_at.desc(), Property.id.desc())
            .all()
        )

    @staticmethod
    def get_property(property_id):
        property_ = db.session.get(Property, property_id)
        if not property_:
            raise NotFoundError("Property not found.")
        return property_

    @staticmethod
    def _owned_property(property_id, owner_id, lock=False):
        property_ = db.session.get(Property, property_id, with_for_update=lock or None)
        if not property_:
            raise NotFoundError("Property not found.")
        if property_.owner_id != owner_id:
            raise ForbiddenError("You are not the owner of this property.")
        return property_

    @staticmethod
    def update_property(property_id, owner_id, payload):
        property_ = PropertyService._owned_property(property_id, owner_id)
        for field in EDITABLE_FIELDS:
            if field in payload:
                setattr(property_, field, (payload.get(field) or "").strip() or None)
        if not property_.title:
            raise InvalidArgumentError("Property title is required.")
        if "price" in payload:
            property_.price = PropertyService._parse_price(payload.get("price"))
        if "rooms_count" in payload:
            property_.rooms_count = PropertyService._parse_rooms(payload.get("rooms_count"))
        db.session.commit()
        return property_

    @staticmethod
    def add_image(property_id, owner_id, storage, upload_root):
        property_ = PropertyService._owned_property(property_id, owner_id)
        image_path = FileService.save_image(storage, upload_root)
        image = PropertyImage(property_id=property_.id, image_path=image_path)
        db.session.add(image)
        db.session.commit()
        return image

    @staticmethod
    def delete_property(property_id, owner_id):
        """
        Remove a property together with its images, payment history and
        finished bookings, in one transaction.

        Refused while the property has pending or approved bookings, or any
        payment still pending at the gateway.
        """
        property_ = PropertyService._owned_property(property_id, owner_id, lock=True)

        active_bookings = (
            Booking.query.filter(Booking.property_id == property_.id)
            .filter(Booking.status.in_(Booking.ACTIVE_STATUSES))
            .count()
        )
        if active_bookings:
            raise ConflictError("Cannot delete property: it has active bookings.")

        booking_ids = [row.id for row in Booking.query.with_entities(Booking.id).filter_by(property_id=property_.id)]
        payment_filter = or_(Payment.property_id == property_.id, Payment.booking_id.in_(booking_ids))
        pending_payments = Payment.query.filter(payment_filter).filter(Payment.status == Payment.STATUS_PENDING).count()
        if pending_payments:
            raise ConflictError("Cannot delete property: it has pending payments.")

        image_paths = [image.image_path for image in property_.images]
        try:
            payment_ids = [row.id for row in Payment.query.with_entities(Payment.id).filter(payment_filter)]
            Notification.query.filter(
                or_(Notification.booking_id.in_(booking_ids), Notification.payment_id.in_(payment_ids))
            ).update({"booking_id": None, "payment_id": None}, synchronize_session=False)
            removed_payments = Payment.query.filter(payment_filter).delete(synchronize_session=False)
            removed_bookings = Booking.query.filter(Booking.id.in_(booking_ids)).delete(synchronize_session=False)
            db.session.delete(property_)
            db.session.commit()
        except SQLAlchemyError as exc:
            db.session.rollback()
            current_app.logger.exception("Deleting property %s failed", property_id)
            raise InternalError("Could not delete property.") from exc

        current_app.logger.info(
            "Property %s deleted with %s payments, %s bookings, %s images",
            property_id,
            removed_payments,
            removed_bookings,
            len(image_paths),
        )
        upload_root = current_app.config["UPLOAD_DIR"]
        for image_path in image_paths:
            FileService.delete_image(image_path, upload_root)
