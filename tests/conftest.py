"""
Shared fixtures.

Every test gets its own SQLite database file, the FastAPI app wired to it
through a ``get_db`` override, and an oracle that tests can swap out.
"""

import os

os.environ["ENV_MODE"] = "development"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./tabletalk-test.db"
os.environ["ORACLE_PROVIDER"] = "disabled"
os.environ["REALTIME_EVENTS_ENABLED"] = "false"
os.environ.pop("GEMINI_API_KEY", None)

from dataclasses import dataclass, field

import httpx
import pytest

from tabletalk.core.config import get_settings

get_settings.cache_clear()

from tabletalk.database import build_engine, build_session_maker, get_db, init_db
from tabletalk.main import app
from tabletalk.models import MenuCategory, MenuItem, Table, Tenant
from tabletalk.services.oracle import DisabledOracle, get_oracle, reset_oracle


@dataclass
class SeedData:
    tenant_id: str
    slug: str
    items: dict = field(default_factory=dict)
    tables: dict = field(default_factory=dict)
    other_tenant_id: str = ""
    other_tables: dict = field(default_factory=dict)

    @property
    def headers(self) -> dict:
        return {"X-Tenant-Slug": self.slug}


@pytest.fixture
async def engine(tmp_path):
    test_engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'tabletalk.db'}")
    await init_db(test_engine)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture
def session_maker(engine):
    return build_session_maker(engine)


@pytest.fixture
async def db(session_maker):
    async with session_maker() as session:
        yield session


@pytest.fixture
def oracle():
    """Override per test module (or per test) to script the oracle."""
    return DisabledOracle()


@pytest.fixture
async def client(session_maker, oracle):
    async def override_get_db():
        async with session_maker() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_oracle] = lambda: oracle

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def settings_env(monkeypatch):
    """Change settings through the environment for one test."""
    def apply(**values):
        for key, value in values.items():
            monkeypatch.setenv(key.upper(), str(value))
        get_settings.cache_clear()
        reset_oracle()

    yield apply
    monkeypatch.undo()
    get_settings.cache_clear()
    reset_oracle()


@pytest.fixture
async def seeded(session_maker) -> SeedData:
    """
    Tenant "demo": Momo 150, Chicken Momo 220, Masala Tea 60, an unavailable
    soup, tables T-01 and T-02, 10% service charge and 13% tax.
    Tenant "other": its own Momo and T-01.
    """
    async with session_maker() as session:
        tenant = Tenant(
            slug="demo",
            name="Demo Kitchen",
            currency_symbol="Rs.",
            service_charge_percent=10,
            tax_percent=13,
        )
        other = Tenant(slug="other", name="Other Diner")
        session.add_all([tenant, other])
        await session.flush()

        dumplings = MenuCategory(tenant_id=tenant.id, name="Dumplings", sort_order=1)
        drinks = MenuCategory(tenant_id=tenant.id, name="Drinks", sort_order=2)
        other_menu = MenuCategory(tenant_id=other.id, name="Mains", sort_order=1)
        session.add_all([dumplings, drinks, other_menu])
        await session.flush()

        momo = MenuItem(tenant_id=tenant.id, category_id=dumplings.id, name="Momo", price=150)
        chicken = MenuItem(tenant_id=tenant.id, category_id=dumplings.id, name="Chicken Momo", price=220)
        tea = MenuItem(tenant_id=tenant.id, category_id=drinks.id, name="Masala Tea", price=60)
        soup = MenuItem(
            tenant_id=tenant.id, category_id=drinks.id, name="Seasonal Soup", price=180, is_available=False
        )
        other_momo = MenuItem(tenant_id=other.id, category_id=other_menu.id, name="Momo", price=999)

        t1 = Table(tenant_id=tenant.id, label="T-01", capacity=4)
        t2 = Table(tenant_id=tenant.id, label="T-02", capacity=2)
        other_t1 = Table(tenant_id=other.id, label="T-01", capacity=4)

        session.add_all([momo, chicken, tea, soup, other_momo, t1, t2, other_t1])
        await session.commit()

        return SeedData(
            tenant_id=tenant.id,
            slug=tenant.slug,
            items={"Momo": momo.id, "Chicken Momo": chicken.id, "Masala Tea": tea.id, "Seasonal Soup": soup.id},
            tables={"T-01": t1.id, "T-02": t2.id},
            other_tenant_id=other.id,
            other_tables={"T-01": other_t1.id},
        )


@pytest.fixture
def chat(client):
    """POST one chat turn and return the decoded JSON body."""
    async def send(message, slug="demo", **extra):
        payload = {"message": message, "tenantSlug": slug}
        payload.update({k: v for k, v in extra.items() if v is not None})
        response = await client.post("/api/chat", json=payload)
        assert response.status_code == 200, response.text
        return response.json()

    return send
