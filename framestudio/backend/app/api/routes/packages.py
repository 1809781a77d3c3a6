from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from ...api import deps
from ...db.session import get_db
from ...db import models, schemas
from ...services import package_service
from ...services.audit_service import actor_for
from ...services.errors import BookingError

router = APIRouter(prefix="/packages", tags=["packages"])


@router.get("/types", response_model=list[schemas.PackageType])
def list_package_types(
    active_only: bool = False,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_user),
):
    return package_service.list_package_types(db, active_only=active_only)


@router.post("/types", response_model=schemas.PackageType, status_code=201)
def create_package_type(
    payload: schemas.PackageTypeCreate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_admin),
):
    try:
        return package_service.create_package_type(db, **payload.model_dump())
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.patch("/types/{package_type_id}", response_model=schemas.PackageType)
def update_package_type(
    package_type_id: int,
    payload: schemas.PackageTypeUpdate,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_admin),
):
    try:
        return package_service.update_package_type(
            db, package_type_id, **payload.model_dump(exclude_unset=True)
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.get("", response_model=list[schemas.Package])
def list_packages(
    user_id: int | None = None,
    status: models.PackageStatus | None = None,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_admin),
):
    return package_service.list_packages(db, user_id=user_id, status=status)


@router.post("", response_model=schemas.Package, status_code=201)
def create_package(
    payload: schemas.PackageCreate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.get_current_admin),
):
    try:
        return package_service.create_package(db, actor=actor_for(admin), **payload.model_dump())
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.get("/{package_id}", response_model=schemas.Package)
def get_package(
    package_id: int,
    db: Session = Depends(get_db),
    _: models.User = Depends(deps.get_current_admin),
):
    try:
        return package_service.get_package(db, package_id)
    except BookingError as exc:
        raise deps.http_error(exc) from exc


@router.patch("/{package_id}", response_model=schemas.Package)
def update_package(
    package_id: int,
    payload: schemas.PackageUpdate,
    db: Session = Depends(get_db),
    admin: models.User = Depends(deps.get_current_admin),
):
    try:
        return package_service.update_package(
            db, package_id, actor=actor_for(admin), **payload.model_dump(exclude_unset=True)
        )
    except BookingError as exc:
        raise deps.http_error(exc) from exc
