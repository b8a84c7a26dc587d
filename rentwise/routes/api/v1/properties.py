from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user, login_required

from rentwise.decorators import role_required
from rentwise.errors import InvalidArgumentError
from rentwise.extensions import cache
from rentwise.services import PropertyService

api_property_bp = Blueprint("api_property", __name__)


def _property_payload(p):
    return {
        "id": p.id,
        "title": p.title,
        "description": p.description,
        "price": str(p.price),
        "rooms_count": p.rooms_count,
        "city": p.city,
        "region": p.region,
        "street": p.street,
        "status": p.status,
        "is_paid": p.is_paid,
        "owner_id": p.owner_id,
        "images": [image.image_path for image in p.images],
    }


@api_property_bp.get("")
@cache.cached(timeout=60, query_string=True)
def list_properties():
    page = request.args.get("page", default=1, type=int)
    per_page = request.args.get("per_page", default=12, type=int)
    paginated = PropertyService.list_available(page=max(page, 1), per_page=min(max(per_page, 1), 50))

    return jsonify(
        {
            "items": [{**_property_payload(p), "owner_name": p.owner.full_name} for p in paginated.items],
            "meta": {
                "page": paginated.page,
                "pages": paginated.pages,
                "total": paginated.total,
                "has_next": paginated.has_next,
                "has_prev": paginated.has_prev,
            },
        }
    )


@api_property_bp.post("")
@login_required
@role_required("owner")
def create_property():
    payload = request.get_json(silent=True) or dict(request.form)
    property_ = PropertyService.create_property(current_user.id, payload)
    return jsonify(_property_payload(property_)), 201


@api_property_bp.get("/mine")
@login_required
@role_required("owner")
def my_properties():
    return jsonify([_property_payload(p) for p in PropertyService.list_for_owner(current_user.id)])


@api_property_bp.get("/<int:property_id>")
def get_property(property_id):
    return jsonify(_property_payload(PropertyService.get_property(property_id)))


@api_property_bp.put("/<int:property_id>")
@login_required
@role_required("owner")
def update_property(property_id):
    payload = request.get_json(silent=True) or {}
    property_ = PropertyService.update_property(property_id, current_user.id, payload)
    return jsonify(_property_payload(property_))


@api_property_bp.post("/<int:property_id>/images")
@login_required
@role_required("owner")
def upload_image(property_id):
    image = request.files.get("image")
    if not image:
        raise InvalidArgumentError("An image file is required.")
    saved = PropertyService.add_image(property_id, current_user.id, image, current_app.config["UPLOAD_DIR"])
    return jsonify({"id": saved.id, "image_path": saved.image_path}), 201


@api_property_bp.delete("/<int:property_id>")
@login_required
@role_required("owner")
def delete_property(property_id):
    PropertyService.delete_property(property_id, current_user.id)
    return jsonify({"message": "Property deleted successfully."})
