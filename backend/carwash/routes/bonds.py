# Overview: Flask API routes for discount bonds; parses input and returns JSON responses.

"""
Bond API Routes

- List / create bonds (administration)
- Validate a code at the till (read-only, repeatable)
- Redeem a bond against a coupon (compare-and-set, second caller gets 409)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..services import bond_service
from ..services.bond_service import (
    BondError,
    BondNotFoundError,
    BondAlreadyUsedError,
    BondCouponError,
    BondStationMismatchError,
)
from ..decorators import require_actor
from ..validation import (
    ValidationError,
    parse_bool,
    parse_int,
    parse_pagination,
    require_json_object,
)


bonds_bp = Blueprint("bonds", __name__, url_prefix="/api/bonds")


def _bond_error_response(e: BondError):
    if isinstance(e, BondNotFoundError):
        return jsonify({"error": str(e), "reason": "not_found"}), 404
    if isinstance(e, BondAlreadyUsedError):
        return jsonify({"error": str(e), "reason": "already_used"}), 409
    if isinstance(e, BondStationMismatchError):
        return jsonify({"error": str(e), "reason": "station_mismatch"}), 409
    if isinstance(e, BondCouponError):
        return jsonify({"error": str(e), "reason": "coupon_conflict"}), 409
    return jsonify({"error": str(e)}), 400


@bonds_bp.get("/")
@require_actor
def list_bonds_route():
    try:
        page, limit = parse_pagination(request.args)
        result = bond_service.list_bonds(
            is_used=parse_bool(request.args.get("is_used"), "is_used"),
            station_id=parse_int(request.args.get("station_id"), "station_id"),
            created_by_user_id=parse_int(request.args.get("created_by_user_id"), "created_by_user_id"),
            page=page,
            limit=limit,
        )
        return jsonify(result), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list bonds")
        return jsonify({"error": "Internal server error"}), 500


@bonds_bp.post("/")
@require_actor
def create_bond_route():
    """
    Request body:
    {
        "pourcentage": 50,
        "station_id": 1,       (optional, null = all stations)
        "description": "..."   (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        pourcentage = parse_int(data.get("pourcentage"), "pourcentage", required=True)
        station_id = parse_int(data.get("station_id"), "station_id")

        bond = bond_service.create_bond(
            pourcentage=pourcentage,
            created_by_user_id=g.user_id,
            station_id=station_id,
            description=data.get("description"),
        )
        current_app.logger.info("Bond %s created (%s%%) by user %s", bond.code, bond.pourcentage, g.user_id)
        return jsonify(bond.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except BondError as e:
        return _bond_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create bond")
        return jsonify({"error": "Internal server error"}), 500


@bonds_bp.get("/<int:bond_id>")
@require_actor
def get_bond_route(bond_id: int):
    bond = bond_service.get_bond(bond_id)
    if not bond:
        return jsonify({"error": "Bond not found"}), 404
    return jsonify(bond.to_dict()), 200


@bonds_bp.get("/validate/<string:code>")
@require_actor
def validate_bond_route(code: str):
    """Check a code typed at the till. Does not reserve the bond."""
    try:
        station_id = parse_int(request.args.get("station_id"), "station_id")
        bond = bond_service.validate_bond(code, station_id)
        return jsonify(bond.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except BondError as e:
        return _bond_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to validate bond")
        return jsonify({"error": "Internal server error"}), 500


@bonds_bp.patch("/<int:bond_id>/use")
@require_actor
def use_bond_route(bond_id: int):
    """
    Request body:
    {
        "coupon_id": 12,
        "station_id": 1   (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        coupon_id = parse_int(data.get("coupon_id"), "coupon_id", required=True, minimum=1)
        station_id = parse_int(data.get("station_id"), "station_id")

        bond = bond_service.redeem_bond(bond_id, coupon_id, station_id)
        return jsonify(bond.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except BondError as e:
        return _bond_error_response(e)
    except Exception:
        current_app.logger.exception("Failed to redeem bond")
        return jsonify({"error": "Internal server error"}), 500
