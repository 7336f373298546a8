import json
import logging
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlmodel import Session, select

from conftest import TEST_PASSWORD
from database.models import ServiceType, User
from database.seed_data import DEFAULT_SERVICE_TYPES, seed_admin, seed_service_types
from logging_config import JsonFormatter
from scripts.create_admin import create_admin
from services.auth_service import AuthService
from services.clock import civil_today, month_bounds, to_civil
from services.report_renderer import EarningsReport, PdfReportRenderer, ReportRow, format_brl, format_row


# --- Clock ---

def test_to_civil_converts_aware_and_naive_utc():
    assert to_civil(datetime(2024, 3, 16, 2, 30, tzinfo=timezone.utc)) == datetime(2024, 3, 15, 23, 30)
    assert to_civil(datetime(2024, 3, 16, 2, 30)) == datetime(2024, 3, 15, 23, 30)


def test_civil_today_uses_business_zone():
    assert civil_today(lambda: datetime(2024, 1, 1, 2, 59, tzinfo=timezone.utc)) == date(2023, 12, 31)


def test_month_bounds_wraps_the_year():
    assert month_bounds(2023, 12) == (datetime(2023, 12, 1), datetime(2024, 1, 1))
    assert month_bounds(2024, 2) == (datetime(2024, 2, 1), datetime(2024, 3, 1))


# --- Report rendering ---

def sample_report():
    return EarningsReport(
        month=3,
        year=2024,
        rows=[ReportRow(1, date(2024, 3, 5), "João & Filhos", "Bruno", Decimal("1234.50"))],
        total=Decimal("1234.50"),
    )


def test_format_brl():
    assert format_brl(Decimal("1234.5")) == "R$ 1.234,50"
    assert format_brl(Decimal("0")) == "R$ 0,00"


def test_format_row():
    assert format_row(sample_report().rows[0]) == "1. 05/03/2024 - João & Filhos - Bruno - R$ 1.234,50"


def test_pdf_renderer_produces_a_pdf():
    renderer = PdfReportRenderer(business_name="Barbearia Teste")
    pdf = renderer.render_report(sample_report())
    assert pdf.startswith(b"%PDF")
    assert renderer.title(sample_report()) == "Relatório de Ganhos - 3/2024"


def test_pdf_renderer_handles_empty_reports():
    pdf = PdfReportRenderer().render_report(EarningsReport(month=1, year=2024))
    assert pdf.startswith(b"%PDF")


# --- Seeding ---

def test_seed_service_types_only_fills_an_empty_catalog(session):
    assert seed_service_types(session) == len(DEFAULT_SERVICE_TYPES)
    assert seed_service_types(session) == 0
    assert len(session.exec(select(ServiceType)).all()) == len(DEFAULT_SERVICE_TYPES)


def test_seed_admin_is_idempotent(session):
    first = seed_admin(session, "Lucas", "Lucas@Barbearia.test", TEST_PASSWORD)
    again = seed_admin(session, "Lucas", "lucas@barbearia.test", "other-password")
    assert first.id == again.id
    assert first.role == "admin"
    assert AuthService.verify_password(TEST_PASSWORD, again.password_hash)


def test_seed_admin_can_reset_password(session):
    seed_admin(session, "Lucas", "lucas@barbearia.test", TEST_PASSWORD)
    user = seed_admin(session, "Lucas", "lucas@barbearia.test", "nova-senha", reset_password=True)
    assert AuthService.verify_password("nova-senha", user.password_hash)


def test_create_admin_script(engine):
    user_id = create_admin(engine, "Lucas", "lucas@barbearia.test", TEST_PASSWORD)
    with Session(engine) as s:
        assert s.get(User, user_id).role == "admin"


def test_startup_seeds_from_environment(engine, monkeypatch):
    from fastapi.testclient import TestClient
    from main import create_app

    monkeypatch.setenv("ADMIN_EMAIL", "dono@barbearia.test")
    monkeypatch.setenv("ADMIN_PASSWORD", TEST_PASSWORD)
    monkeypatch.setenv("SEED_SERVICE_TYPES", "true")
    with TestClient(create_app(engine=engine, auth_service=AuthService(secret="x"))) as client:
        resp = client.post("/login", json={"email": "dono@barbearia.test", "password": TEST_PASSWORD})
        assert resp.status_code == 200
        assert resp.json()["role"] == "admin"
        token = resp.json()["token"]
        names = [t["name"] for t in client.get("/serviceTypes", headers={"Authorization": f"Bearer {token}"}).json()]
    assert sorted(names) == sorted(t["name"] for t in DEFAULT_SERVICE_TYPES)


# --- Logging ---

def test_json_formatter_emits_one_json_object():
    record = logging.LogRecord("services.sale_service", logging.INFO, __file__, 1, "Recorded sale %s", (7,), None)
    data = json.loads(JsonFormatter().format(record))
    assert data["message"] == "Recorded sale 7"
    assert data["level"] == "INFO"
    assert data["logger"] == "services.sale_service"
