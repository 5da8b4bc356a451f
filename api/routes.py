import math

from flask import Blueprint, current_app, jsonify, request

from services.allocation import compute_allocations
from services.errors import ApiError
from services.models import Instrument

bp = Blueprint('api', __name__, url_prefix='/api')

_STATUS = {
    "NOT_FOUND": 404,
    "UNAUTHORIZED": 401,
    "RATE_LIMITED": 429,
    "NETWORK_ERROR": 502,
    "UNDEFINED_WEIGHT": 422,
    "DIVISION_UNDEFINED": 422,
    "UNKNOWN_ERROR": 500,
}


def _ext(name):
    return current_app.extensions['allocation'][name]


def _float_arg(payload, key, default):
    value = payload.get(key, default)
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise ValueError(f'{key} must be numeric')
    if not math.isfinite(number):
        raise ValueError(f'{key} must be a finite number')
    return number


@bp.errorhandler(ApiError)
def handle_api_error(e):
    return jsonify(e.to_dict()), _STATUS.get(e.code, 500)


@bp.errorhandler(ValueError)
def handle_value_error(e):
    return jsonify(error=str(e)), 400


@bp.get('/health')
def health():
    return {'status': 'ok'}


@bp.get('/quote/<symbol>')
def quote(symbol):
    return jsonify(_ext('client').fetch_one(symbol).to_dict())


@bp.get('/quotes')
def quotes():
    symbols = [s for s in (request.args.get('symbols') or '').split(',') if s.strip()]
    if not symbols:
        return jsonify(error='symbols is required'), 400
    return jsonify(data=[i.to_dict() for i in _ext('client').fetch_many(symbols)])


@bp.post('/allocations')
def allocations():
    settings = _ext('settings')
    payload = request.get_json(silent=True) or {}
    raw = payload.get('instruments')
    if not isinstance(raw, list) or not raw:
        return jsonify(error='instruments is required'), 400
    instruments = [Instrument.from_dict(item) for item in raw]
    budget = _float_arg(payload, 'totalBudget', settings.total_budget)
    rate = _float_arg(payload, 'discountRate', settings.discount_rate)
    results = compute_allocations(instruments, budget, rate)
    return jsonify(totalBudget=budget, discountRate=rate, data=[r.to_dict() for r in results])


@bp.get('/portfolio')
def portfolio():
    settings = _ext('settings')
    store = _ext('store')
    budget = _float_arg(request.args, 'totalBudget', settings.total_budget)
    rate = _float_arg(request.args, 'discountRate', settings.discount_rate)
    results = compute_allocations(store.snapshot(), budget, rate)
    return jsonify(
        totalBudget=budget,
        discountRate=rate,
        data=[r.to_dict() for r in results],
        lastError=store.last_error.to_dict() if store.last_error else None,
    )


@bp.post('/portfolio/instruments')
def add_instrument():
    payload = request.get_json(silent=True) or {}
    inst = _ext('store').add(Instrument.from_dict(payload))
    return jsonify(inst.to_dict()), 201


@bp.patch('/portfolio/instruments/<instrument_id>')
def update_instrument(instrument_id):
    payload = request.get_json(silent=True) or {}
    changes = Instrument.coerce(payload, partial=True)
    try:
        inst = _ext('store').update(instrument_id, **changes)
    except KeyError:
        return jsonify(error=f'Instrument not found: {instrument_id}'), 404
    return jsonify(inst.to_dict())


@bp.delete('/portfolio/instruments/<instrument_id>')
def remove_instrument(instrument_id):
    try:
        _ext('store').remove(instrument_id)
    except KeyError:
        return jsonify(error=f'Instrument not found: {instrument_id}'), 404
    return '', 204


@bp.post('/portfolio/refresh')
def refresh():
    payload = request.get_json(silent=True) or {}
    quotes = _ext('refresher').refresh(payload.get('symbols'))
    return jsonify(data=[i.to_dict() for i in quotes])


@bp.get('/cache')
def cache_info():
    return {'size': _ext('client').cache_size()}


@bp.delete('/cache')
def cache_clear():
    _ext('client').clear_cache()
    return '', 204
