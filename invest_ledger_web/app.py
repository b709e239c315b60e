from __future__ import annotations

import logging

import click
from flask import Flask, jsonify, request

from invest_ledger.config import LedgerSettings, configure_logging, parse_bool
from invest_ledger.data_models import CashflowStatus
from invest_ledger.engine import project_cashflows
from invest_ledger.errors import LedgerError
from invest_ledger.fifo import match_lots
from invest_ledger.main import (
    cashflow_to_dict,
    fifo_to_dict,
    parse_flow,
    parse_terms,
    parse_transaction,
)
from invest_ledger.portfolio import unrealized_gain
from invest_ledger.utils import decimal_from_str
from invest_ledger.xirr import xirr_from_flows
from invest_ledger_web.cashflow_store import CashflowStore, create_store_from_env

logger = logging.getLogger(__name__)


def _json_body() -> dict:
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise click.BadParameter("Request body must be a JSON object")
    return data


def _transactions(data: dict):
    return [parse_transaction(r, i) for i, r in enumerate(data.get("transactions") or [])]


def _flag(data: dict, key: str, default: bool) -> bool:
    raw = data.get(key)
    if raw is None:
        return default
    if isinstance(raw, bool):
        return raw
    try:
        return parse_bool(key, str(raw))
    except ValueError as exc:
        raise click.BadParameter(str(exc))


def create_app(settings: LedgerSettings | None = None, store: CashflowStore | None = None) -> Flask:
    settings = settings or LedgerSettings.from_env()
    configure_logging(settings.log_level)
    app = Flask(__name__)
    app.config["LEDGER_SETTINGS"] = settings
    cashflow_store = store or create_store_from_env(settings.database_url)

    @app.errorhandler(LedgerError)
    def ledger_error(exc: LedgerError):
        return jsonify({"error": str(exc)}), 422

    @app.errorhandler(click.BadParameter)
    def bad_input(exc: click.BadParameter):
        return jsonify({"error": exc.format_message()}), 400

    @app.post("/api/positions")
    def positions():
        data = _json_body()
        result = match_lots(_transactions(data), instrument=data.get("instrument"))
        payload = fifo_to_dict(result)
        if data.get("price") is not None:
            try:
                price = decimal_from_str(str(data["price"]))
            except ValueError as exc:
                raise click.BadParameter(str(exc))
            payload["unrealized_gain"] = float(unrealized_gain(result, price).gain_abs)
        return jsonify(payload)

    @app.post("/api/cashflows")
    def cashflows():
        data = _json_body()
        terms = parse_terms(data.get("terms") or {})
        investment_id = data.get("investment_id")
        rows = project_cashflows(
            terms,
            _transactions(data),
            account_for_sells=_flag(data, "account_for_sells", settings.account_for_sells),
            fallback_window_months=settings.fallback_window_months,
            instrument=investment_id,
        )
        payload = {"cashflows": [cashflow_to_dict(r) for r in rows]}
        if investment_id:
            payload["stored"] = cashflow_store.replace_projected(str(investment_id), rows)
        return jsonify(payload)

    @app.post("/api/xirr")
    def xirr():
        data = _json_body()
        flows = [parse_flow(r) for r in data.get("flows") or []]
        return jsonify({"xirr": xirr_from_flows(flows)})

    @app.get("/api/investments/<investment_id>/cashflows")
    def stored_cashflows(investment_id: str):
        status = request.args.get("status")
        try:
            status_filter = CashflowStatus(status.upper()) if status else None
        except ValueError:
            raise click.BadParameter(f"Unknown cashflow status: {status}")
        return jsonify({"cashflows": cashflow_store.list_cashflows(investment_id, status_filter)})

    return app


if __name__ == "__main__":
    print("Starting investment ledger API...")
    create_app().run(host="0.0.0.0", port=8710, debug=True)
