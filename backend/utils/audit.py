# backend/utils/audit.py
import logging
from fastapi import Request
from sqlalchemy.orm import Session
from models.log import Log

logger = logging.getLogger(__name__)

def client_ip(request: Request | None):
    if request is None or request.client is None:
        return None
    return request.client.host

# Record an audit entry; commit=False lets callers keep it inside their own transaction
def write_log(db: Session, *, user_id, action, resource, status="SUCCESS", ip=None, meta=None, order_id=None, commit=True):
    entry = Log(user_id=user_id, order_id=order_id, action=action, resource=resource, status=status, ip=ip, meta=meta or {})
    db.add(entry)
    if commit:
        db.commit()
    logger.info("audit %s %s user=%s status=%s", resource, action, user_id, status)
