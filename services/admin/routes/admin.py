"""Rutas de administración (solo ADMIN)"""
from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
from datetime import datetime
from uuid import UUID

from shared.database.session import get_db
from shared.database.models import User, Role, ReservationStatus, AuditAction
from shared.auth.dependencies import get_current_admin
from services.admin.models.admin import (
    AdminUserResponse,
    UsersListResponse,
    UserDetailResponse,
    UserCreateRequest,
    UserUpdateRequest,
    AdminVenueResponse,
    VenuesListResponse,
    VenueDetailResponse,
    VenueCreateRequest,
    VenueUpdateRequest,
    AdminEventResponse,
    EventsListResponse,
    EventDetailResponse,
    EventCreateRequest,
    EventUpdateRequest,
    AdminReservationResponse,
    ReservationsListResponse,
    ReservationDetailResponse,
    ReservationUpdateRequest,
    CheckInsListResponse,
    AuditLogResponse,
    AuditLogListResponse,
    DeleteResponse,
)
from services.ticket_validation.models.ticket import CheckInResponse
from services.admin.services.user_management_service import UserManagementService
from services.admin.services.venue_service import VenueService
from services.admin.services.admin_events_service import AdminEventsService
from services.admin.services.admin_reservations_service import AdminReservationsService
from services.admin.services.check_ins_service import CheckInsAdminService
from services.admin.services.audit_log_service import AuditLogService
from services.admin.services.stats_service import StatsService


router = APIRouter()


# ==================== USERS ====================

@router.get("/users", response_model=UsersListResponse)
async def list_users(
    role: Optional[Role] = Query(None, description="Filtrar por rol"),
    verified: Optional[bool] = Query(None, description="true: verificados, false: no verificados"),
    search: Optional[str] = Query(None, description="Búsqueda por email, nombre o teléfono"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Listar usuarios con cantidad de reservas"""
    service = UserManagementService()
    rows = await service.list_users(db, role=role, verified=verified, search=search)
    users = [
        AdminUserResponse.model_validate(user).model_copy(update={"reservation_count": count})
        for user, count in rows
    ]
    return {"users": users}


@router.post("/users", response_model=UserDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_user(
    data: UserCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Crear usuario (409 si el email o teléfono ya existen)"""
    service = UserManagementService()
    user = await service.create_user(db, data, current_user)
    return {"user": user}


@router.put("/users/{user_id}", response_model=UserDetailResponse)
async def update_user(
    user_id: UUID,
    data: UserUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Actualizar usuario (parcial)"""
    service = UserManagementService()
    user = await service.update_user(db, user_id, data, current_user)
    return {"user": user}


@router.delete("/users/{user_id}", response_model=DeleteResponse)
async def delete_user(
    user_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Eliminar usuario (no se permite eliminarse a sí mismo)"""
    service = UserManagementService()
    await service.delete_user(db, user_id, current_user)
    return {"success": True}


# ==================== EVENTS ====================

@router.get("/events", response_model=EventsListResponse)
async def list_events(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Listar eventos con sede y cantidad de reservas"""
    service = AdminEventsService()
    rows = await service.list_events(db)
    events = [
        AdminEventResponse.model_validate(event).model_copy(update={"reservation_count": count})
        for event, count in rows
    ]
    return {"events": events}


@router.post("/events", response_model=EventDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_event(
    data: EventCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Crear evento (409 si el slug ya existe, 404 si la sede no existe)"""
    service = AdminEventsService()
    event = await service.create_event(db, data, current_user)
    return {"event": event}


@router.put("/events/{event_id}", response_model=EventDetailResponse)
async def update_event(
    event_id: UUID,
    data: EventUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    service = AdminEventsService()
    event = await service.update_event(db, event_id, data, current_user)
    return {"event": event}


@router.delete("/events/{event_id}", response_model=DeleteResponse)
async def delete_event(
    event_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    service = AdminEventsService()
    await service.delete_event(db, event_id, current_user)
    return {"success": True}


# ==================== VENUES ====================

@router.get("/venues", response_model=VenuesListResponse)
async def list_venues(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Listar sedes con cantidad de eventos"""
    service = VenueService()
    rows = await service.list_venues(db)
    venues = [
        AdminVenueResponse.model_validate(venue).model_copy(update={"event_count": count})
        for venue, count in rows
    ]
    return {"venues": venues}


@router.post("/venues", response_model=VenueDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_venue(
    data: VenueCreateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    service = VenueService()
    venue = await service.create_venue(db, data, current_user)
    return {"venue": venue}


@router.put("/venues/{venue_id}", response_model=VenueDetailResponse)
async def update_venue(
    venue_id: UUID,
    data: VenueUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    service = VenueService()
    venue = await service.update_venue(db, venue_id, data, current_user)
    return {"venue": venue}


@router.delete("/venues/{venue_id}", response_model=DeleteResponse)
async def delete_venue(
    venue_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Eliminar sede (409 venue_in_use si algún evento la referencia)"""
    service = VenueService()
    await service.delete_venue(db, venue_id, current_user)
    return {"success": True}


# ==================== RESERVATIONS ====================

@router.get("/reservations", response_model=ReservationsListResponse)
async def list_reservations(
    status_filter: Optional[ReservationStatus] = Query(None, alias="status"),
    event_id: Optional[UUID] = Query(None, alias="eventId"),
    user_id: Optional[UUID] = Query(None, alias="userId"),
    search: Optional[str] = Query(None),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Listar reservas con usuario, evento y último check-in"""
    service = AdminReservationsService()
    rows = await service.list_reservations(
        db, status=status_filter, event_id=event_id, user_id=user_id, search=search
    )
    reservations = [
        AdminReservationResponse.model_validate(row["reservation"]).model_copy(update={
            "latest_check_in": (
                CheckInResponse.model_validate(row["latest_check_in"])
                if row["latest_check_in"] is not None else None
            ),
            "check_in_count": row["check_in_count"],
        })
        for row in rows
    ]
    return {"reservations": reservations}


@router.put("/reservations/{reservation_id}", response_model=ReservationDetailResponse)
async def update_reservation(
    reservation_id: UUID,
    data: ReservationUpdateRequest,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Aprobar, cancelar o cambiar la cantidad de una reserva"""
    service = AdminReservationsService()
    reservation = await service.update_reservation(db, reservation_id, data, current_user)
    return {"reservation": reservation}


@router.delete("/reservations/{reservation_id}", response_model=DeleteResponse)
async def delete_reservation(
    reservation_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    service = AdminReservationsService()
    await service.delete_reservation(db, reservation_id, current_user)
    return {"success": True}


# ==================== CHECK-INS ====================

@router.get("/check-ins", response_model=CheckInsListResponse)
async def list_check_ins(
    reservation_id: Optional[UUID] = Query(None, alias="reservationId"),
    user_id: Optional[UUID] = Query(None, alias="userId"),
    event_id: Optional[UUID] = Query(None, alias="eventId"),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    service = CheckInsAdminService()
    check_ins = await service.list_check_ins(
        db,
        reservation_id=reservation_id,
        user_id=user_id,
        event_id=event_id,
        date_from=date_from,
        date_to=date_to,
    )
    return {"check_ins": check_ins}


@router.delete("/check-ins/{check_in_id}", response_model=DeleteResponse)
async def delete_check_in(
    check_in_id: UUID,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Deshacer un check-in registrado por error"""
    service = CheckInsAdminService()
    await service.delete_check_in(db, check_in_id, current_user)
    return {"success": True}


# ==================== AUDIT LOGS / STATS ====================

@router.get("/audit-logs", response_model=AuditLogListResponse)
async def list_audit_logs(
    action: Optional[AuditAction] = Query(None),
    entity_type: Optional[str] = Query(None, alias="entityType"),
    entity_id: Optional[str] = Query(None, alias="entityId"),
    date_from: Optional[datetime] = Query(None, alias="from"),
    date_to: Optional[datetime] = Query(None, alias="to"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Registro de auditoría paginado (más recientes primero)"""
    service = AuditLogService()
    logs, total = await service.list_audit_logs(
        db,
        action=action,
        entity_type=entity_type,
        entity_id=entity_id,
        date_from=date_from,
        date_to=date_to,
        limit=limit,
        offset=offset,
    )
    return {"audit_logs": logs, "total": total, "limit": limit, "offset": offset}


@router.get("/stats")
async def get_stats(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_admin)
):
    """Estadísticas globales + actividad reciente de auditoría"""
    stats = await StatsService().get_dashboard_stats(db)
    recent = await AuditLogService().recent(db, limit=10)
    stats["auditLogs"] = {
        "recent": [
            AuditLogResponse.model_validate(log).model_dump(mode="json", by_alias=True)
            for log in recent
        ]
    }
    return stats
