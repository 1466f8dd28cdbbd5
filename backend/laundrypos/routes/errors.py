# Overview: Maps domain exceptions to JSON error responses for every blueprint.

from flask import jsonify

from ..permissions import PermissionDeniedError
from ..validation import ConflictError, InsufficientStockError, DuplicateBarcodeError, NotFoundError, ValidationError


def register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def _validation_error(e):
        return jsonify({"error": str(e)}), 400

    @app.errorhandler(InsufficientStockError)
    def _insufficient_stock(e):
        return jsonify({
            "error": str(e),
            "product_name": e.product_name,
            "available": e.available,
            "requested": e.requested,
        }), 409

    @app.errorhandler(DuplicateBarcodeError)
    def _duplicate_barcode(e):
        return jsonify({
            "error": str(e),
            "barcode": e.barcode,
            "existing_product_id": e.existing_product_id,
            "existing_product_name": e.existing_product_name,
        }), 409

    @app.errorhandler(ConflictError)
    def _conflict(e):
        return jsonify({"error": str(e)}), 409

    @app.errorhandler(NotFoundError)
    def _not_found(e):
        return jsonify({"error": str(e)}), 404

    @app.errorhandler(PermissionDeniedError)
    def _permission_denied(e):
        return jsonify({
            "error": "Permission denied",
            "required_permission": e.capability,
            "message": str(e),
        }), 403
