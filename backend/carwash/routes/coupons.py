# Overview: Flask API routes for coupons and their settlement; parses input and returns JSON responses.

"""
Coupon API Routes

- Intake (create), listing, detail
- Status moves washing / done
- Settlement (the only way to reach 'paid')
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import COUPON_STATUSES
from ..services import coupon_service, ledger_service, settlement_service
from ..services.bond_service import (
    BondError,
    BondNotFoundError,
    BondAlreadyUsedError,
    BondCouponError,
    BondStationMismatchError,
)
from ..services.coupon_service import CouponError, InvalidTransitionError
from ..services.ledger_service import PaymentError
from ..services.settlement_service import SettlementError
from ..decorators import require_actor
from ..validation import (
    ValidationError,
    parse_choice,
    parse_int,
    parse_pagination,
    parse_str,
    require_json_object,
)


coupons_bp = Blueprint("coupons", __name__, url_prefix="/api/coupons")


def _transition_error(e: InvalidTransitionError):
    return jsonify({
        "error": str(e),
        "current_status": e.current,
        "target_status": e.target,
    }), 409


@coupons_bp.get("/")
@require_actor
def list_coupons_route():
    try:
        page, limit = parse_pagination(request.args)
        result = coupon_service.list_coupons(
            station_id=parse_int(request.args.get("station_id"), "station_id"),
            status=parse_choice(request.args.get("status"), "status", COUPON_STATUSES),
            page=page,
            limit=limit,
        )
        return jsonify(result), 200
    except (ValidationError, CouponError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list coupons")
        return jsonify({"error": "Internal server error"}), 500


@coupons_bp.post("/")
@require_actor
def create_coupon_route():
    """
    Request body:
    {
        "station_id": 1,
        "montant_total": 10000,   (optional, may be set at finish time)
        "remise": 0,              (optional)
        "fiche_piste_id": 7       (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        coupon = coupon_service.create_coupon(
            parse_int(data.get("station_id"), "station_id", required=True, minimum=1),
            montant_total=parse_int(data.get("montant_total"), "montant_total", minimum=0) or 0,
            remise=parse_int(data.get("remise"), "remise", minimum=0) or 0,
            fiche_piste_id=parse_int(data.get("fiche_piste_id"), "fiche_piste_id"),
            created_by_user_id=g.user_id,
        )
        return jsonify(coupon.to_dict()), 201
    except (ValidationError, CouponError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to create coupon")
        return jsonify({"error": "Internal server error"}), 500


@coupons_bp.get("/<int:coupon_id>")
@require_actor
def get_coupon_route(coupon_id: int):
    coupon = coupon_service.get_coupon(coupon_id)
    if not coupon:
        return jsonify({"error": "Coupon not found"}), 404
    return jsonify(coupon.to_dict()), 200


@coupons_bp.patch("/<int:coupon_id>/status")
@require_actor
def update_status_route(coupon_id: int):
    """
    Request body:
    {
        "status": "washing" | "done",
        "montant_total": 10000   (optional, only with "done")
    }

    'paid' is refused here; use POST /<id>/settle.
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        status = parse_choice(data.get("status"), "status", COUPON_STATUSES, required=True)

        if status == coupon_service.STATUS_WASHING:
            coupon = coupon_service.start_wash(coupon_id)
        elif status == coupon_service.STATUS_DONE:
            montant_total = parse_int(data.get("montant_total"), "montant_total", minimum=0)
            coupon = coupon_service.finish_wash(coupon_id, montant_total)
        elif status == coupon_service.STATUS_PAID:
            return jsonify({"error": "Coupons are marked paid by settlement only"}), 409
        else:
            return jsonify({"error": f"Cannot move a coupon back to '{status}'"}), 409

        return jsonify(coupon.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except InvalidTransitionError as e:
        return _transition_error(e)
    except CouponError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update coupon status")
        return jsonify({"error": "Internal server error"}), 500


@coupons_bp.post("/<int:coupon_id>/settle")
@require_actor
def settle_coupon_route(coupon_id: int):
    """
    Request body:
    {
        "station_id": 1,              (optional, defaults to coupon station)
        "methode": "cash",            (required unless bond covers 100%)
        "bond_code": "BL-7KX2QM",     (optional)
        "reference_externe": "..."    (optional)
    }

    Returns:
        201: coupon, ledger entries, bond, split and payment label
        400: invalid input
        404: coupon or bond not found
        409: wrong status, bond used or bond not valid at this station
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        result = settlement_service.settle_coupon(
            coupon_id,
            created_by_user_id=g.user_id,
            station_id=parse_int(data.get("station_id"), "station_id", minimum=1),
            methode=parse_str(data.get("methode"), "methode"),
            bond_code=parse_str(data.get("bond_code"), "bond_code", max_length=32),
            reference_externe=parse_str(data.get("reference_externe"), "reference_externe", max_length=128),
        )
        current_app.logger.info(
            "Coupon %s settled by user %s: %s",
            result.coupon.numero, g.user_id, result.label,
        )
        return jsonify(result.to_dict()), 201
    except (ValidationError, SettlementError, PaymentError) as e:
        return jsonify({"error": str(e)}), 400
    except InvalidTransitionError as e:
        return _transition_error(e)
    except CouponError as e:
        return jsonify({"error": str(e)}), 404
    except BondNotFoundError as e:
        return jsonify({"error": str(e), "reason": "not_found"}), 404
    except BondAlreadyUsedError as e:
        return jsonify({"error": str(e), "reason": "already_used"}), 409
    except BondStationMismatchError as e:
        return jsonify({"error": str(e), "reason": "station_mismatch"}), 409
    except BondCouponError as e:
        return jsonify({"error": str(e), "reason": "coupon_conflict"}), 409
    except BondError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to settle coupon")
        return jsonify({"error": "Internal server error"}), 500


@coupons_bp.get("/<int:coupon_id>/payments")
@require_actor
def coupon_payments_route(coupon_id: int):
    coupon = coupon_service.get_coupon(coupon_id)
    if not coupon:
        return jsonify({"error": "Coupon not found"}), 404

    payments = ledger_service.list_for_coupon(coupon_id)
    return jsonify({
        "coupon_id": coupon_id,
        "payments": [p.to_dict() for p in payments],
        "label": settlement_service.describe_coupon_payment(coupon_id),
    }), 200
