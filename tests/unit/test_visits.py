"""Tests for the visit state machine, token check-in and listings."""

import asyncio
from datetime import timedelta

import pytest

from vanguard_engine.common.database import DatabaseManager
from vanguard_engine.common.exceptions import (
    AuthorizationError,
    MalformedTokenError,
    NotFoundError,
    StateConflictError,
)
from vanguard_engine.common.models import utcnow
from vanguard_engine.visits.models import VisitStatus
from vanguard_engine.visits.service import active_visits_cache_key
from vanguard_engine.visits.tokens import generate_token, scan_url, verify_token


@pytest.fixture
async def staff(seeded, claims_for):
    return {
        "receptionist": await claims_for(seeded["receptionist"]),
        "security": await claims_for(seeded["security"]),
        "resident": await claims_for(seeded["resident"]),
        "other": await claims_for(seeded["other_owner"]),
    }


@pytest.fixture
async def visitor_id(db, visitor_service, staff):
    async with db.get_session() as session:
        visitor = await visitor_service.create_visitor(
            session, staff["receptionist"], "Vera", "Vance", company="Initech"
        )
        return visitor.id


@pytest.fixture
def schedule(db, visit_service, staff, seeded, visitor_id):
    """Factory: schedule a visit for Vera hosted by the receptionist."""

    async def _schedule(**kwargs):
        kwargs.setdefault("purpose", "Quarterly review")
        async with db.get_session() as session:
            return await visit_service.schedule(
                session, staff["receptionist"], visitor_id, seeded["receptionist"], **kwargs
            )

    return _schedule


class TestDirectCheckIn:
    async def test_check_in(self, db, visit_service, staff, seeded, visitor_id):
        async with db.get_session() as session:
            visit = await visit_service.check_in(
                session, staff["receptionist"], visitor_id, seeded["receptionist"],
                purpose="Delivery", location="Lobby",
            )
        assert visit.status == VisitStatus.CHECKED_IN.value
        assert visit.check_in_at is not None
        assert visit.tenant_id == seeded["tenant_a"]
        assert visit.visitor.first_name == "Vera"

    async def test_security_cannot_check_in(self, db, visit_service, staff, seeded, visitor_id):
        async with db.get_session() as session:
            with pytest.raises(AuthorizationError):
                await visit_service.check_in(
                    session, staff["security"], visitor_id, seeded["receptionist"]
                )

    async def test_visitor_from_other_tenant(self, db, visit_service, staff, seeded, visitor_id):
        async with db.get_session() as session:
            with pytest.raises(NotFoundError) as exc:
                await visit_service.check_in(
                    session, staff["other"], visitor_id, seeded["other_owner"]
                )
        assert exc.value.message == "Visitor not found"

    async def test_host_from_other_tenant(self, db, visit_service, staff, seeded, visitor_id):
        async with db.get_session() as session:
            with pytest.raises(NotFoundError) as exc:
                await visit_service.check_in(
                    session, staff["receptionist"], visitor_id, seeded["other_owner"]
                )
        assert exc.value.message == "Host user not found"


class TestSchedule:
    async def test_schedule_with_token(self, schedule, settings):
        start = utcnow() + timedelta(hours=1)
        visit = await schedule(scheduled_start=start, scheduled_end=start + timedelta(hours=1))
        assert visit.status == VisitStatus.SCHEDULED.value
        assert visit.check_in_at is None
        check = verify_token(visit.qr_token, settings.qr_secret)
        assert check.valid and check.visit_id == visit.id
        assert visit.qr_code.startswith("data:image/png;base64,")

    async def test_schedule_without_token(self, schedule):
        visit = await schedule(generate_token=False)
        assert visit.qr_token is None
        assert visit.qr_code is None

    async def test_generate_token_later(self, db, visit_service, staff, schedule):
        visit = await schedule(generate_token=False)
        async with db.get_session() as session:
            visit = await visit_service.generate_token(session, staff["receptionist"], visit.id)
        assert visit.qr_token.startswith(f"vv:{visit.id}:")

    async def test_generate_token_requires_scheduled(self, db, visit_service, staff, schedule):
        visit = await schedule()
        async with db.get_session() as session:
            await visit_service.scan_token(session, staff["receptionist"], visit.qr_token)
        async with db.get_session() as session:
            with pytest.raises(StateConflictError):
                await visit_service.generate_token(session, staff["receptionist"], visit.id)

    async def test_generate_token_other_tenant(self, db, visit_service, staff, schedule):
        visit = await schedule()
        async with db.get_session() as session:
            with pytest.raises(NotFoundError):
                await visit_service.generate_token(session, staff["other"], visit.id)


class TestScan:
    async def test_scan_checks_in(self, db, visit_service, staff, schedule):
        visit = await schedule()
        async with db.get_session() as session:
            scanned = await visit_service.scan_token(session, staff["receptionist"], visit.qr_token)
        assert scanned.id == visit.id
        assert scanned.status == VisitStatus.CHECKED_IN.value
        assert scanned.check_in_at is not None

    async def test_scan_accepts_scan_url(self, db, visit_service, staff, schedule, settings):
        visit = await schedule()
        async with db.get_session() as session:
            scanned = await visit_service.scan_token(
                session, staff["receptionist"], scan_url(settings.app_url, visit.qr_token)
            )
        assert scanned.status == VisitStatus.CHECKED_IN.value

    async def test_second_scan_conflicts(self, db, visit_service, staff, schedule):
        visit = await schedule()
        async with db.get_session() as session:
            await visit_service.scan_token(session, staff["receptionist"], visit.qr_token)
        async with db.get_session() as session:
            with pytest.raises(StateConflictError) as exc:
                await visit_service.scan_token(session, staff["receptionist"], visit.qr_token)
        assert exc.value.message == "Visitor is already checked in"
        assert exc.value.status_code == 409

    async def test_scan_after_checkout_conflicts(self, db, visit_service, staff, schedule):
        visit = await schedule()
        async with db.get_session() as session:
            await visit_service.scan_token(session, staff["receptionist"], visit.qr_token)
            await visit_service.checkout(session, staff["receptionist"], visit.id)
        async with db.get_session() as session:
            with pytest.raises(StateConflictError) as exc:
                await visit_service.scan_token(session, staff["receptionist"], visit.qr_token)
        assert exc.value.message == "Visit has already been completed"

    async def test_tampered_token(self, db, visit_service, staff, schedule):
        visit = await schedule()
        tampered = visit.qr_token[:-1] + ("0" if visit.qr_token[-1] != "0" else "1")
        async with db.get_session() as session:
            with pytest.raises(MalformedTokenError) as bad_mac:
                await visit_service.scan_token(session, staff["receptionist"], tampered)
            with pytest.raises(MalformedTokenError) as bad_shape:
                await visit_service.scan_token(session, staff["receptionist"], "hello")
        assert bad_mac.value.message == bad_shape.value.message

    async def test_valid_token_for_unknown_visit(self, db, visit_service, staff, settings, seeded):
        token = generate_token("does-not-exist", settings.qr_secret)
        async with db.get_session() as session:
            with pytest.raises(NotFoundError):
                await visit_service.scan_token(session, staff["receptionist"], token)

    async def test_security_cannot_scan(self, db, visit_service, staff, schedule):
        visit = await schedule()
        async with db.get_session() as session:
            with pytest.raises(AuthorizationError):
                await visit_service.scan_token(session, staff["security"], visit.qr_token)

    async def test_other_tenant_scan_is_not_found(self, db, visit_service, staff, schedule):
        visit = await schedule()
        async with db.get_session() as session:
            with pytest.raises(NotFoundError):
                await visit_service.scan_token(session, staff["other"], visit.qr_token)

    async def test_scan_invalidates_active_list(self, db, visit_service, staff, schedule, cache):
        visit = await schedule()
        async with db.get_session() as session:
            assert await visit_service.list_active(session, staff["receptionist"]) == []
            await visit_service.scan_token(session, staff["receptionist"], visit.qr_token)
            active = await visit_service.list_active(session, staff["receptionist"])
        assert [v["id"] for v in active] == [visit.id]


class TestPublicScan:
    async def test_response_is_whitelisted(self, db, visit_service, schedule):
        visit = await schedule()
        async with db.get_session() as session:
            result = await visit_service.public_scan_token(session, visit.qr_token)
        assert set(result) == {"success", "visitor_name", "company", "purpose", "check_in_at"}
        assert result["success"] is True
        assert result["visitor_name"] == "Vera Vance"
        assert result["company"] == "Initech"
        assert result["purpose"] == "Quarterly review"

    async def test_public_scan_transitions(self, db, visit_service, staff, schedule):
        visit = await schedule()
        async with db.get_session() as session:
            await visit_service.public_scan_token(session, visit.qr_token)
        async with db.get_session() as session:
            fetched = await visit_service.get_visit(session, staff["receptionist"], visit.id)
            assert fetched.status == VisitStatus.CHECKED_IN.value

    async def test_public_scan_twice_conflicts(self, db, visit_service, schedule):
        visit = await schedule()
        async with db.get_session() as session:
            await visit_service.public_scan_token(session, visit.qr_token)
        async with db.get_session() as session:
            with pytest.raises(StateConflictError):
                await visit_service.public_scan_token(session, visit.qr_token)

    async def test_public_scan_forged(self, db, visit_service, schedule):
        visit = await schedule()
        async with db.get_session() as session:
            with pytest.raises(MalformedTokenError):
                await visit_service.public_scan_token(session, f"vv:{visit.id}:000000000000")


class TestCheckout:
    async def test_checkout(self, db, visit_service, staff, seeded, visitor_id):
        async with db.get_session() as session:
            visit = await visit_service.check_in(
                session, staff["receptionist"], visitor_id, seeded["receptionist"]
            )
            done = await visit_service.checkout(session, staff["security"], visit.id)
        assert done.status == VisitStatus.CHECKED_OUT.value
        assert done.check_out_at is not None

    async def test_checkout_twice(self, db, visit_service, staff, seeded, visitor_id):
        async with db.get_session() as session:
            visit = await visit_service.check_in(
                session, staff["receptionist"], visitor_id, seeded["receptionist"]
            )
            await visit_service.checkout(session, staff["security"], visit.id)
            with pytest.raises(StateConflictError):
                await visit_service.checkout(session, staff["security"], visit.id)

    async def test_checkout_scheduled_closes_it(self, db, visit_service, staff, schedule):
        visit = await schedule()
        async with db.get_session() as session:
            done = await visit_service.checkout(session, staff["receptionist"], visit.id)
        assert done.status == VisitStatus.CHECKED_OUT.value
        async with db.get_session() as session:
            with pytest.raises(StateConflictError):
                await visit_service.scan_token(session, staff["receptionist"], visit.qr_token)

    async def test_resident_cannot_checkout(self, db, visit_service, staff, seeded, visitor_id):
        async with db.get_session() as session:
            visit = await visit_service.check_in(
                session, staff["receptionist"], visitor_id, seeded["receptionist"]
            )
            with pytest.raises(AuthorizationError):
                await visit_service.checkout(session, staff["resident"], visit.id)

    async def test_checkout_drops_active_entry(
        self, db, visit_service, staff, seeded, visitor_id, cache
    ):
        async with db.get_session() as session:
            visit = await visit_service.check_in(
                session, staff["receptionist"], visitor_id, seeded["receptionist"]
            )
            assert len(await visit_service.list_active(session, staff["security"])) == 1
            await visit_service.checkout(session, staff["security"], visit.id)
            assert await cache.get(active_visits_cache_key(seeded["tenant_a"])) is None
            assert await visit_service.list_active(session, staff["security"]) == []


class TestListing:
    async def test_active_list_cached(self, db, visit_service, staff, seeded, visitor_id, cache):
        async with db.get_session() as session:
            await visit_service.check_in(
                session, staff["receptionist"], visitor_id, seeded["receptionist"]
            )
            first = await visit_service.list_active(session, staff["security"])
        cached = await cache.get(active_visits_cache_key(seeded["tenant_a"]))
        assert cached == first
        assert first[0]["visitor"]["first_name"] == "Vera"

    async def test_active_list_is_tenant_scoped(self, db, visit_service, staff, seeded, visitor_id):
        async with db.get_session() as session:
            await visit_service.check_in(
                session, staff["receptionist"], visitor_id, seeded["receptionist"]
            )
            assert await visit_service.list_active(session, staff["other"]) == []

    async def test_resident_cannot_view(self, db, visit_service, staff):
        async with db.get_session() as session:
            with pytest.raises(AuthorizationError):
                await visit_service.list_active(session, staff["resident"])

    async def test_filters(self, db, visit_service, staff, seeded, visitor_id, schedule):
        await schedule(purpose="Interview")
        async with db.get_session() as session:
            await visit_service.check_in(
                session, staff["receptionist"], visitor_id, seeded["receptionist"], purpose="Delivery"
            )
            rows, total = await visit_service.list_visits(session, staff["security"], status="active")
            assert total == 1 and rows[0].purpose == "Delivery"

            rows, total = await visit_service.list_visits(session, staff["security"], status="scheduled")
            assert total == 1 and rows[0].purpose == "Interview"

            rows, total = await visit_service.list_visits(session, staff["security"], search="vera")
            assert total == 2

            rows, total = await visit_service.list_visits(session, staff["security"], search="interv")
            assert total == 1

            rows, total = await visit_service.list_visits(
                session, staff["security"], host_user_id=seeded["security"]
            )
            assert total == 0

            rows, total = await visit_service.list_visits(
                session, staff["security"], page=2, page_size=1, sort_field="bogus"
            )
            assert total == 2 and len(rows) == 1


class TestConcurrency:
    async def test_racing_scans_admit_exactly_one(
        self, tmp_path, settings, role_store, tenant_service, user_service,
        visitor_service, visit_service, issuer, password,
    ):
        db = DatabaseManager(settings.model_copy(update={"db_url": f"sqlite+aiosqlite:///{tmp_path}/race.db"}))
        await db.init()
        await db.create_all()
        try:
            async with db.get_session() as session:
                await role_store.ensure_catalog(session)
                tenant = await tenant_service.ensure_tenant(session, "Acme", "acme")
                host = await user_service.create_user(session, tenant.id, "desk@acme.com", password)
                claims = issuer.issue(host).claims
                visitor = await visitor_service.create_visitor(session, claims, "Vera", "Vance")
                visit = await visit_service.schedule(session, claims, visitor.id, host.id)
                token = visit.qr_token

            async def attempt(scan):
                async with db.get_session() as session:
                    return await scan(session)

            outcomes = await asyncio.gather(
                attempt(lambda s: visit_service.scan_token(s, claims, token)),
                attempt(lambda s: visit_service.public_scan_token(s, token)),
                return_exceptions=True,
            )
            failures = [o for o in outcomes if isinstance(o, BaseException)]
            assert len(failures) == 1
            assert isinstance(failures[0], StateConflictError)

            async with db.get_session() as session:
                stored = await visit_service.get_visit(session, claims, visit.id)
                assert stored.status == VisitStatus.CHECKED_IN.value
        finally:
            await db.close()
