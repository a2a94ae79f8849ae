from flask import Blueprint, request

from rewards_api.common.auth import requires_perms, current_company_id
from rewards_api.common.http import ok, fail
from rewards_api.common.paging import page_limit
from rewards_api.extensions import db
from rewards_api.models.employee import Employee
from rewards_api.models.kudos import Kudos

bp = Blueprint("kudos", __name__, url_prefix="/api/v1/rewards/kudos")


def _row(k: Kudos):
    return {
        "id": k.id,
        "sender_id": k.sender_id,
        "sender_name": k.sender.full_name if k.sender else None,
        "receiver_id": k.receiver_id,
        "receiver_name": k.receiver.full_name if k.receiver else None,
        "reason": k.reason,
        "points": k.points,
        "created_at": k.created_at.isoformat() if k.created_at else None,
    }


@bp.get("")
@requires_perms("rewards.kudos.read")
def list_kudos():
    cid = current_company_id()
    q = Kudos.query.filter(Kudos.company_id == cid)
    rid = request.args.get("receiver_id", type=int)
    sid = request.args.get("sender_id", type=int)
    if rid:
        q = q.filter(Kudos.receiver_id == rid)
    if sid:
        q = q.filter(Kudos.sender_id == sid)
    total = q.count()
    page, limit = page_limit()
    rows = q.order_by(Kudos.created_at.desc(), Kudos.id.desc()).offset((page - 1) * limit).limit(limit).all()
    return ok([_row(k) for k in rows], page=page, limit=limit, total=total)


@bp.post("")
@requires_perms("rewards.kudos.write")
def create_kudos():
    cid = current_company_id()
    j = request.get_json(silent=True) or {}
    try:
        sender_id = int(j.get("sender_id"))
        receiver_id = int(j.get("receiver_id"))
    except (TypeError, ValueError):
        return fail("sender_id and receiver_id are required", 422)
    reason = (j.get("reason") or "").strip()
    if not reason:
        return fail("reason is required", 422)
    if sender_id == receiver_id:
        return fail("cannot send kudos to yourself", 422)
    try:
        points = int(j.get("points") or 0)
    except (TypeError, ValueError):
        return fail("points must be an integer", 422)
    if points < 0:
        return fail("points must be >= 0", 422)

    found = Employee.query.filter(Employee.company_id == cid, Employee.id.in_([sender_id, receiver_id])).count()
    if found != 2:
        return fail("sender or receiver not found", 404)

    k = Kudos(company_id=cid, sender_id=sender_id, receiver_id=receiver_id, reason=reason, points=points)
    db.session.add(k)
    db.session.commit()
    return ok(_row(k), status=201)
