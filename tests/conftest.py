"""Shared fixtures: a fixed clock, cart/rule builders and an in-memory database."""
from dataclasses import replace
from datetime import datetime, timezone
from decimal import Decimal

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import verticals.storefront.models.db_models  # noqa: F401
from core.models.base import Base
from promotions.models import CalculationContext, CartLine, DiscountRule, normalize_code

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def context():
    return CalculationContext(now=NOW)


@pytest.fixture
def line():
    """Build a cart line from plain values: line("sku-1", "9.99", 2, "books")."""
    def _line(product_id, unit_price, quantity=1, category_id=None):
        return CartLine(
            product_id=product_id,
            unit_price=Decimal(unit_price),
            quantity=quantity,
            category_id=category_id,
        )
    return _line


@pytest.fixture
def rule():
    """Build a rule with an id and sensible defaults."""
    counter = {"n": 0}

    def _rule(kind="percentage", value=Decimal("10"), **kwargs):
        counter["n"] += 1
        kwargs.setdefault("id", f"rule-{counter['n']}")
        return DiscountRule(kind=kind, value=value, **kwargs)
    return _rule


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------

@pytest_asyncio.fixture
async def session_factory():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    await engine.dispose()


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as session:
        yield session


# ---------------------------------------------------------------------------
# In-memory rule source (no database)
# ---------------------------------------------------------------------------

class InMemoryRuleStore:
    """Rule source with the repository's contract, kept in a dict.

    Increments stay pending until commit(), mirroring a session.
    """

    def __init__(self, rules=()):
        self.rules = {r.id: r for r in rules}
        self.pending: dict[str, int] = {}

    async def load_rules(self, tenant_id, now, coupon_code=None):
        code = normalize_code(coupon_code)
        return [
            self._current(r)
            for r in self.rules.values()
            if not r.is_coupon or r.code == code
        ]

    async def consume_usage(self, tenant_id, rule_id):
        current = self._current(self.rules[rule_id])
        if current.usage_limit is not None and current.usage_count >= current.usage_limit:
            return False
        self.pending[rule_id] = self.pending.get(rule_id, 0) + 1
        return True

    async def release(self):
        self.pending.clear()

    async def commit(self):
        for rule_id, uses in self.pending.items():
            stored = self.rules[rule_id]
            self.rules[rule_id] = replace(stored, usage_count=stored.usage_count + uses)
        self.pending.clear()

    def _current(self, stored):
        uses = self.pending.get(stored.id, 0)
        return replace(stored, usage_count=stored.usage_count + uses) if uses else stored


@pytest.fixture
def rule_store():
    return InMemoryRuleStore
