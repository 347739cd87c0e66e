# Overview: Flask API routes for the cash register; parses input and returns JSON responses.

"""
Cash Register (caisse) API Routes

- Daily summary per station
- Paginated ledger listing
- Ad-hoc income/expense entries (coupon payments go through
  POST /api/coupons/<id>/settle instead)
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..models import PAYMENT_TYPES, PAYMENT_METHODS
from ..services import ledger_service
from ..services.ledger_service import PaymentError, METHOD_BOND
from ..decorators import require_actor
from ..validation import (
    ValidationError,
    parse_choice,
    parse_date,
    parse_datetime,
    parse_int,
    parse_pagination,
    require_json_object,
)


caisse_bp = Blueprint("caisse", __name__, url_prefix="/api/caisse")

# Bond entries only come from settlement
MANUAL_METHODS = tuple(m for m in PAYMENT_METHODS if m != METHOD_BOND)


@caisse_bp.get("/summary")
@require_actor
def summary_route():
    try:
        station_id = parse_int(request.args.get("station_id"), "station_id", required=True, minimum=1)
        day = parse_date(request.args.get("date"), "date")
        return jsonify(ledger_service.get_caisse_summary(station_id, day)), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to load caisse summary")
        return jsonify({"error": "Internal server error"}), 500


@caisse_bp.get("/transactions")
@require_actor
def list_transactions_route():
    try:
        args = request.args
        station_id = parse_int(args.get("station_id"), "station_id", required=True, minimum=1)
        page, limit = parse_pagination(args)
        result = ledger_service.list_transactions(
            station_id,
            type=parse_choice(args.get("type"), "type", PAYMENT_TYPES),
            day=parse_date(args.get("date"), "date"),
            start=parse_datetime(args.get("start_date"), "start_date"),
            end=parse_datetime(args.get("end_date"), "end_date"),
            user_id=parse_int(args.get("user_id"), "user_id"),
            page=page,
            limit=limit,
        )
        return jsonify(result), 200
    except (ValidationError, PaymentError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to list caisse transactions")
        return jsonify({"error": "Internal server error"}), 500


@caisse_bp.post("/transactions")
@require_actor
def create_transaction_route():
    """
    Request body:
    {
        "type": "expense",
        "montant": 5000,
        "methode": "cash",
        "station_id": 1,
        "description": "Savon",        (optional)
        "categorie": "fournitures",    (optional)
        "reference_externe": "...",    (optional)
        "coupon_id": 12                (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))

        payment = ledger_service.record_payment(
            type=parse_choice(data.get("type"), "type", PAYMENT_TYPES, required=True),
            montant=parse_int(data.get("montant"), "montant", required=True, minimum=1),
            methode=parse_choice(data.get("methode"), "methode", MANUAL_METHODS, required=True),
            station_id=parse_int(data.get("station_id"), "station_id", required=True, minimum=1),
            created_by_user_id=g.user_id,
            coupon_id=parse_int(data.get("coupon_id"), "coupon_id", minimum=1),
            description=data.get("description"),
            reference_externe=data.get("reference_externe"),
            categorie=data.get("categorie"),
        )
        return jsonify(payment.to_dict()), 201
    except (ValidationError, PaymentError) as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to record caisse transaction")
        return jsonify({"error": "Internal server error"}), 500
