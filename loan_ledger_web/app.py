"""JSON API over the loan ledger.

The whole servicing state lives in one document in the state store. Every
mutating route loads it, applies the change, replays the affected loan's
ledger and saves the result, so stored portions always match the history.
"""

from __future__ import annotations

from datetime import date
from typing import Any, Dict, List, Optional

from flask import Flask, current_app, jsonify, request

from loan_ledger.aggregate import MODES, aggregate_timeline
from loan_ledger.config import BaseConfig
from loan_ledger.data_models import Draw, ExtraPaymentRule, Loan, LoanDataError, Payment
from loan_ledger.logging_config import get_logger, setup_logging
from loan_ledger.payoff import list_due_dates, maturity_date
from loan_ledger.projection import compare_projections
from loan_ledger.state import LedgerState, loan_summary, run_projection, summary_to_record
from loan_ledger.utils import parse_iso, to_decimal

from .default_state import build_default_state
from .state_store import StateStore, create_store_from_env

logger = get_logger(__name__)


class ApiError(Exception):
    def __init__(self, code: str, message: str, status: int = 400) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.status = status


def _store() -> StateStore:
    return current_app.extensions["state_store"]


def _load_state() -> LedgerState:
    return LedgerState.from_record(_store().ensure_default_state())


def _save_state(state: LedgerState) -> Dict[str, Any]:
    record = state.to_record()
    _store().save_state(record)
    return record


def _recalculate(state: LedgerState, loan: Optional[Loan] = None) -> None:
    state.recalculate(loan, accrual=current_app.config["ACCRUAL"])


def _json_body() -> Dict[str, Any]:
    body = request.get_json(silent=True)
    if not isinstance(body, dict):
        raise ApiError("invalid_body", "Request body must be a JSON object")
    return body


def _get_loan(state: LedgerState, loan_id: str) -> Loan:
    try:
        return state.find_loan(loan_id)
    except LoanDataError:
        raise ApiError("loan_not_found", f"Unknown loan id: {loan_id}", 404)


def _find_row(rows: List[Any], row_id: str, kind: str) -> Any:
    for row in rows:
        if str(row.id) == str(row_id):
            return row
    raise ApiError(f"{kind}_not_found", f"Unknown {kind} id: {row_id}", 404)


def _require_amount(body: Dict[str, Any], key: str = "Amount"):
    amount = to_decimal(body.get(key), default=None)
    if amount is None or not amount.is_finite() or amount <= 0:
        raise ApiError("invalid_amount", f"{key} must be a positive number")
    return amount


def _require_date(body: Dict[str, Any], key: str) -> date:
    parsed = parse_iso(body.get(key))
    if parsed is None:
        raise ApiError("invalid_date", f"{key} must be a YYYY-MM-DD date")
    return parsed


def _as_of() -> date:
    raw = request.args.get("asOf")
    if not raw:
        return date.today()
    parsed = parse_iso(raw)
    if parsed is None:
        raise ApiError("invalid_date", "asOf must be a YYYY-MM-DD date")
    return parsed


def _payment_from_body(body: Dict[str, Any], base: Dict[str, Any]) -> Payment:
    record = dict(base)
    record.update(body)
    record["id"] = base["id"]
    record["LoanRef"] = base["LoanRef"]
    record["PaymentDate"] = _require_date(record, "PaymentDate").isoformat()
    record["Amount"] = float(_require_amount(record))
    return Payment.from_record(record)


def register_routes(app: Flask) -> None:
    @app.errorhandler(ApiError)
    def handle_api_error(exc: ApiError):
        return jsonify({"error": exc.code, "message": exc.message}), exc.status

    @app.errorhandler(LoanDataError)
    def handle_data_error(exc: LoanDataError):
        return jsonify({"error": "invalid_record", "message": str(exc)}), 400

    @app.get("/api/health")
    def health():
        return jsonify({"status": "ok"})

    @app.get("/api/state")
    def get_state():
        return jsonify(_store().ensure_default_state())

    @app.put("/api/state")
    def put_state():
        body = _json_body()
        for key in ("loans", "payments", "draws"):
            if not isinstance(body.get(key, []), list):
                raise ApiError("invalid_state", f"{key} must be a list")
        state = LedgerState.from_record(body)
        for loan in state.loans:
            loan.validate()
        _recalculate(state)
        logger.info("State replaced: %d loan(s), %d payment(s)", len(state.loans), len(state.payments))
        return jsonify(_save_state(state))

    @app.put("/api/loans/<loan_id>")
    def update_loan(loan_id: str):
        body = _json_body()
        state = _load_state()
        loan = _get_loan(state, loan_id)
        record = loan.to_record()
        record.update(body)
        record["id"] = loan.id
        updated = Loan.from_record(record)
        updated.validate()
        state.loans = [updated if existing is loan else existing for existing in state.loans]
        _recalculate(state, updated)
        _save_state(state)
        logger.info("Loan %s terms updated", updated.id)
        return jsonify(updated.to_record())

    @app.post("/api/loans/<loan_id>/payments")
    def add_payment(loan_id: str):
        body = _json_body()
        state = _load_state()
        loan = _get_loan(state, loan_id)
        payment = _payment_from_body(body, {"id": state.next_id(state.payments), "LoanRef": loan.id})
        state.payments.append(payment)
        _recalculate(state, loan)
        _save_state(state)
        posted = _find_row(state.payments, payment.id, "payment")
        logger.info("Payment %s posted to loan %s", posted.id, loan.id)
        return jsonify(posted.to_record()), 201

    @app.put("/api/payments/<payment_id>")
    def update_payment(payment_id: str):
        body = _json_body()
        state = _load_state()
        existing = _find_row(state.payments, payment_id, "payment")
        loan = _get_loan(state, existing.loan_ref)
        updated = _payment_from_body(body, existing.to_record())
        state.payments = [updated if p is existing else p for p in state.payments]
        _recalculate(state, loan)
        _save_state(state)
        return jsonify(_find_row(state.payments, existing.id, "payment").to_record())

    @app.delete("/api/payments/<payment_id>")
    def delete_payment(payment_id: str):
        state = _load_state()
        existing = _find_row(state.payments, payment_id, "payment")
        state.payments = [p for p in state.payments if p is not existing]
        loan = next((c for c in state.loans if c.id == existing.loan_ref), None)
        if loan is not None:
            _recalculate(state, loan)
        _save_state(state)
        logger.info("Payment %s deleted", existing.id)
        return jsonify({"deleted": existing.id})

    @app.post("/api/loans/<loan_id>/draws")
    def add_draw(loan_id: str):
        body = _json_body()
        state = _load_state()
        loan = _get_loan(state, loan_id)
        record = dict(body)
        record.update(
            {
                "id": state.next_id(state.draws),
                "LoanRef": loan.id,
                "DrawDate": _require_date(body, "DrawDate").isoformat(),
                "Amount": float(_require_amount(body)),
            }
        )
        draw = Draw.from_record(record)
        state.draws.append(draw)
        _recalculate(state, loan)
        _save_state(state)
        logger.info("Draw %s of %s on loan %s", draw.id, draw.amount, loan.id)
        return jsonify(draw.to_record()), 201

    @app.delete("/api/draws/<draw_id>")
    def delete_draw(draw_id: str):
        state = _load_state()
        existing = _find_row(state.draws, draw_id, "draw")
        state.draws = [d for d in state.draws if d is not existing]
        loan = next((c for c in state.loans if c.id == existing.loan_ref), None)
        if loan is not None:
            _recalculate(state, loan)
        _save_state(state)
        return jsonify({"deleted": existing.id})

    @app.get("/api/loans/<loan_id>/summary")
    def summary(loan_id: str):
        state = _load_state()
        loan = _get_loan(state, loan_id)
        return jsonify(summary_to_record(loan_summary(state, loan, _as_of())))

    @app.get("/api/loans/<loan_id>/due-dates")
    def due_dates(loan_id: str):
        state = _load_state()
        loan = _get_loan(state, loan_id)
        raw = request.args.get("through")
        if raw:
            through = parse_iso(raw)
            if through is None:
                raise ApiError("invalid_date", "through must be a YYYY-MM-DD date")
        else:
            through = maturity_date(loan)
        dates = list_due_dates(loan, through) if through else []
        return jsonify({"loan_id": loan.id, "due_dates": [d.isoformat() for d in dates]})

    @app.post("/api/loans/<loan_id>/projection")
    def projection(loan_id: str):
        body = _json_body()
        state = _load_state()
        loan = _get_loan(state, loan_id)
        raw_extras = body.get("extras") or []
        if not isinstance(raw_extras, list) or not all(isinstance(e, dict) for e in raw_extras):
            raise ApiError("invalid_extras", "extras must be a list of objects")
        extras = [ExtraPaymentRule.from_record(e) for e in raw_extras]
        aggregate = body.get("aggregate")
        if aggregate and aggregate not in MODES:
            raise ApiError("invalid_aggregate", f"aggregate must be one of {', '.join(MODES)}")
        as_of = _require_date(body, "asOf") if body.get("asOf") else _as_of()

        scenario, baseline = run_projection(
            state, loan, extras, body.get("mode", "period"), as_of, body.get("baseline", "scheduled")
        )
        payload: Dict[str, Any] = {
            "projection": scenario.to_record(),
            "baseline": {
                "payoffDate": baseline.payoff_date.isoformat() if baseline.payoff_date else None,
                "totals": baseline.totals.to_record(),
            },
            "comparison": compare_projections(baseline, scenario),
        }
        if aggregate:
            payload["buckets"] = [b.to_record() for b in aggregate_timeline(scenario.timeline, aggregate)]
        return jsonify(payload)


def create_app(config: Optional[BaseConfig] = None) -> Flask:
    """Build the Flask application and its state store."""
    config = config or BaseConfig()
    setup_logging(config)

    app = Flask(__name__)
    app.config.from_object(config)
    app.secret_key = config.SECRET_KEY

    def seeded_state() -> Dict[str, Any]:
        state = LedgerState.from_record(build_default_state())
        state.recalculate(accrual=config.ACCRUAL)
        return state.to_record()

    app.extensions["state_store"] = create_store_from_env(config.DATABASE_URL, default_factory=seeded_state)
    register_routes(app)
    logger.info("Web app ready", extra={"database_url": config.DATABASE_URL})
    return app


if __name__ == "__main__":
    print("Starting Loan Ledger web app...")
    create_app().run(host="0.0.0.0", port=8710, debug=True)
