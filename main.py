import logging
import os
from contextlib import asynccontextmanager
from decimal import Decimal
from typing import Optional, List

from fastapi import FastAPI, APIRouter, Depends, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from pydantic import BaseModel, Field
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, select

from database.models import Customer, ServiceType
from database.seed_data import seed_admin, seed_service_types
from database.session import build_engine, create_db_and_tables, get_session
from logging_config import configure_logging
from services.access_policy import Identity
from services.auth_service import AuthService
from services.clock import utc_now
from services.errors import ServiceError, ValidationError, PersistenceError
from services.report_renderer import PdfReportRenderer
from services.revenue_service import RevenueService, parse_period
from services.sale_service import SaleService, format_amount, parse_amount

logger = logging.getLogger(__name__)

TRUTHY = {"1", "true", "yes", "on"}

# --- Request Schemas ---

class UserCreate(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    role: Optional[str] = None

class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None

class CustomerCreate(BaseModel):
    name: Optional[str] = None
    phone: Optional[str] = None

class ServiceTypeCreate(BaseModel):
    name: Optional[str] = None
    default_price: Optional[Decimal] = Field(None, alias="defaultPrice")

class SaleItemCreate(BaseModel):
    service_type_id: Optional[int] = Field(None, alias="serviceTypeId")
    charged_amount: Optional[Decimal] = Field(None, alias="chargedAmount")

class SaleCreate(BaseModel):
    customer_id: Optional[int] = Field(None, alias="customerId")
    total: Optional[Decimal] = None
    items: Optional[List[SaleItemCreate]] = None

# --- Serializers ---

def customer_to_dict(c: Customer) -> dict:
    return {"id": c.id, "name": c.name, "phone": c.phone}

def service_type_to_dict(t: ServiceType) -> dict:
    return {"id": t.id, "name": t.name, "defaultPrice": format_amount(t.default_price)}

# --- Dependencies ---

bearer_scheme = HTTPBearer(auto_error=False)

def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service

def get_sale_service(request: Request) -> SaleService:
    return request.app.state.sale_service

def get_revenue_service(request: Request) -> RevenueService:
    return request.app.state.revenue_service

def require_identity(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    auth_service: AuthService = Depends(get_auth_service),
) -> Identity:
    token = credentials.credentials if credentials else None
    return auth_service.decode_access_token(token)

def commit_or_fail(session: Session, message: str):
    try:
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        logger.exception(message)
        raise PersistenceError(message)

router = APIRouter()

# --- Auth Routes ---

@router.post("/users", status_code=status.HTTP_201_CREATED)
def create_user(data: UserCreate, session: Session = Depends(get_session), auth_service: AuthService = Depends(get_auth_service)):
    user = auth_service.register_user(session, data.name, data.email, data.password, data.role)
    return {"id": user.id, "name": user.name, "email": user.email, "role": user.role}

@router.post("/login")
def login(data: LoginRequest, session: Session = Depends(get_session), auth_service: AuthService = Depends(get_auth_service)):
    user = auth_service.authenticate(session, data.email, data.password)
    return {
        "token": auth_service.create_access_token(user),
        "id": user.id,
        "name": user.name,
        "role": user.role,
    }

# --- Customers ---

@router.get("/customers")
def list_customers(session: Session = Depends(get_session), identity: Identity = Depends(require_identity)):
    try:
        customers = session.exec(select(Customer).order_by(Customer.name)).all()
    except SQLAlchemyError:
        logger.exception("Failed to list customers")
        raise PersistenceError("Error fetching customers")
    return [customer_to_dict(c) for c in customers]

@router.post("/customers", status_code=status.HTTP_201_CREATED)
def create_customer(data: CustomerCreate, session: Session = Depends(get_session), identity: Identity = Depends(require_identity)):
    if not data.name or not data.name.strip():
        raise ValidationError("Name is required")
    customer = Customer(name=data.name.strip(), phone=data.phone or None)
    session.add(customer)
    commit_or_fail(session, "Error adding customer")
    session.refresh(customer)
    return customer_to_dict(customer)

# --- Service Types ---

@router.get("/serviceTypes")
def list_service_types(session: Session = Depends(get_session), identity: Identity = Depends(require_identity)):
    try:
        service_types = session.exec(select(ServiceType).order_by(ServiceType.name)).all()
    except SQLAlchemyError:
        logger.exception("Failed to list service types")
        raise PersistenceError("Error fetching service types")
    return [service_type_to_dict(t) for t in service_types]

@router.post("/serviceTypes", status_code=status.HTTP_201_CREATED)
def create_service_type(data: ServiceTypeCreate, session: Session = Depends(get_session), identity: Identity = Depends(require_identity)):
    if not data.name or not data.name.strip() or data.default_price is None:
        raise ValidationError("Name and default price are required")
    default_price = parse_amount(data.default_price, "defaultPrice")
    if default_price < 0:
        raise ValidationError("defaultPrice must not be negative")
    service_type = ServiceType(name=data.name.strip(), default_price=default_price)
    session.add(service_type)
    commit_or_fail(session, "Error adding service type")
    session.refresh(service_type)
    return service_type_to_dict(service_type)

# --- Sales ---

@router.post("/sales", status_code=status.HTTP_201_CREATED)
def create_sale(
    data: SaleCreate,
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
    sale_service: SaleService = Depends(get_sale_service),
):
    items = [
        {"service_type_id": i.service_type_id, "charged_amount": i.charged_amount}
        for i in (data.items or [])
    ]
    sale_id = sale_service.record_sale(
        session,
        customer_id=data.customer_id,
        total=data.total,
        items=items,
        recording_user_id=identity.user_id,
    )
    return {"message": "Sale recorded successfully", "saleId": sale_id}

@router.get("/salesHistory")
def sales_history(
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
    sale_service: SaleService = Depends(get_sale_service),
):
    return sale_service.list_history(session, identity)

@router.delete("/sales/{sale_id}/withCustomerCascade")
def delete_sale_with_customer(
    sale_id: int,
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
    sale_service: SaleService = Depends(get_sale_service),
):
    result = sale_service.delete_sale(session, sale_id, identity)
    if result.deleted_customer:
        message = "Sale and its customer deleted successfully"
    else:
        message = "Sale deleted successfully, customer kept (other sales reference it)"
    return {"message": message, "deletedCustomer": result.deleted_customer}

# --- Revenue ---

@router.get("/summary")
def summary(
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
    revenue_service: RevenueService = Depends(get_revenue_service),
):
    totals = revenue_service.summarize(session, identity)
    return {key: format_amount(value) for key, value in totals.items()}

@router.get("/earningsReport")
def earnings_report(
    month: Optional[str] = None,
    year: Optional[str] = None,
    session: Session = Depends(get_session),
    identity: Identity = Depends(require_identity),
    revenue_service: RevenueService = Depends(get_revenue_service),
):
    month_number, year_number = parse_period(month, year)
    pdf = revenue_service.report(session, identity, month_number, year_number)
    filename = f"earnings_report_{month_number}_{year_number}.pdf"
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )

# --- Health ---

@router.get("/health")
@router.head("/health")
def health_check():
    return {"status": "ok"}

# --- Error Handlers ---

async def service_error_handler(request: Request, exc: ServiceError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})

async def request_validation_handler(request: Request, exc: RequestValidationError):
    details = [
        {"field": ".".join(str(part) for part in e.get("loc", ())), "message": e.get("msg")}
        for e in exc.errors()
    ]
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"error": "Invalid request data", "details": details})

# --- Setup ---

def bootstrap(session: Session):
    admin_email = os.getenv("ADMIN_EMAIL")
    admin_password = os.getenv("ADMIN_PASSWORD")
    if admin_email and admin_password:
        seed_admin(session, os.getenv("ADMIN_NAME", "Administrador"), admin_email, admin_password)
    if os.getenv("SEED_SERVICE_TYPES", "").lower() in TRUTHY:
        seed_service_types(session)

def create_app(engine=None, auth_service: AuthService = None, clock=utc_now, renderer=None) -> FastAPI:
    """
    Builds the application. The engine and services live on app.state for the
    lifetime of the process; tests pass their own engine and clock.
    """
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # On startup
        app.state.engine = engine or build_engine()
        create_db_and_tables(app.state.engine)
        with Session(app.state.engine) as session:
            bootstrap(session)
        logger.info("Barbershop POS started")
        yield
        if engine is None:
            app.state.engine.dispose()

    app = FastAPI(title="Barbershop POS", lifespan=lifespan)
    app.state.auth_service = auth_service or AuthService()
    app.state.sale_service = SaleService(clock=clock)
    app.state.revenue_service = RevenueService(renderer or PdfReportRenderer(), clock=clock)

    origins = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]
    app.add_middleware(CORSMiddleware, allow_origins=origins, allow_methods=["*"], allow_headers=["*"])
    app.add_exception_handler(ServiceError, service_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.include_router(router)
    return app

configure_logging()
app = create_app()

if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", "3001")))
