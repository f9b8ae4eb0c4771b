# backend/routes/addresses.py
from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from database import get_db
from utils.tokenJWT import get_current_user
from utils.audit import write_log, client_ip
from models.users import User
from models.address import Address
from schemas.address import AddressCreate, AddressUpdate, AddressOut, AddressList

router = APIRouter(prefix="/account/addresses", tags=["Addresses"])

def _get_owned(db: Session, user: User, address_id: int) -> Address:
    address = db.query(Address).filter(Address.id == address_id, Address.user_id == user.id).first()
    if not address:
        raise HTTPException(status_code=404, detail="Address not found")
    return address

# Only one address per user carries the default flag
def _make_default(db: Session, user: User, address: Address):
    db.query(Address).filter(Address.user_id == user.id, Address.id != address.id).update(
        {Address.is_default: False}, synchronize_session="fetch"
    )
    address.is_default = True

@router.get("", response_model=AddressList)
def list_addresses(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    rows = db.query(Address).filter(Address.user_id == current_user.id).order_by(Address.id).all()
    return {"addresses": rows}

@router.post("", response_model=AddressOut, status_code=status.HTTP_201_CREATED)
def create_address(
    payload: AddressCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    has_any = db.query(Address).filter(Address.user_id == current_user.id).first() is not None
    address = Address(user_id=current_user.id, **payload.model_dump(exclude={"is_default"}))
    db.add(address)
    db.flush()

    # The first saved address becomes the default
    if payload.is_default or not has_any:
        _make_default(db, current_user, address)

    write_log(db, user_id=current_user.id, action="ADDRESS_CREATE", resource="addresses",
              ip=client_ip(request), meta={"address_id": address.id}, commit=False)
    db.commit()
    db.refresh(address)
    return address

@router.put("/{address_id}", response_model=AddressOut)
def update_address(
    address_id: int,
    payload: AddressUpdate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    address = _get_owned(db, current_user, address_id)
    changes = payload.model_dump(exclude_unset=True)
    is_default = changes.pop("is_default", None)

    for field, value in changes.items():
        if value is not None:
            setattr(address, field, value)

    if is_default:
        _make_default(db, current_user, address)
    elif is_default is False:
        address.is_default = False

    write_log(db, user_id=current_user.id, action="ADDRESS_UPDATE", resource="addresses",
              ip=client_ip(request), meta={"address_id": address.id, "fields": sorted(payload.model_fields_set)}, commit=False)
    db.commit()
    db.refresh(address)
    return address

@router.delete("/{address_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_address(
    address_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user)
):
    address = _get_owned(db, current_user, address_id)
    db.delete(address)
    write_log(db, user_id=current_user.id, action="ADDRESS_DELETE", resource="addresses",
              ip=client_ip(request), meta={"address_id": address_id}, commit=False)
    db.commit()
