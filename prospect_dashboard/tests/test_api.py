"""
Tests for the API handlers.

Handlers are called directly with an in-memory document store patched over
the repository, matching how FastAPI would inject their dependencies.
"""

from unittest.mock import AsyncMock, patch

import pytest
from fastapi import HTTPException

from prospect_dashboard.api.conversions import get_conversions_with_complaints
from prospect_dashboard.api.ingest import (
    ingest_complaints,
    ingest_nps,
    ingest_payments,
    ingest_prospects,
    ingest_todos,
)
from prospect_dashboard.api.ingest import router as ingest_router
from prospect_dashboard.api.nps import get_nps, get_nps_dates
from prospect_dashboard.api.pnl import add_pnl_config, get_effective_pnl_config, get_pnl, get_pnl_config
from prospect_dashboard.api.sales import (
    clear_complaint_sales,
    get_complaint_sales,
    get_overseas_sales,
    require_range,
)
from prospect_dashboard.api.sales import router as sales_router
from prospect_dashboard.core.config import Settings
from prospect_dashboard.core.dependencies import verify_api_key
from prospect_dashboard.main import app, health_check
from prospect_dashboard.models import (
    Complaint,
    NPSDayData,
    NPSScoreEntry,
    PnLConfigUpdate,
    PnLSource,
    ServiceConfig,
    ServiceKey,
)
from prospect_dashboard.services import repository
from prospect_dashboard.services.pnl import PnLConfigStore


DATE = '2026-01-29'


@pytest.fixture
def settings() -> Settings:
    return Settings(sale_window_months=3, rate_decimals=2)


@pytest.fixture
def config_store() -> PnLConfigStore:
    return PnLConfigStore(default_effective_date='2024-01-01')


# =============================================================================
# Application
# =============================================================================


class TestApplication:
    def test_routes_registered(self):
        paths = set(app.openapi()['paths'])
        assert {
            '/health',
            '/sales/overseas',
            '/sales/complaints',
            '/ingest/complaints/{date}',
            '/ingest/payments',
            '/ingest/todos',
            '/ingest/prospects/{date}',
            '/conversions-with-complaints/{date}',
            '/pnl',
            '/pnl/config',
            '/pnl/config/effective',
            '/ingest/nps',
            '/nps',
            '/nps/dates',
        } <= paths

    @pytest.mark.asyncio
    async def test_health(self):
        assert await health_check() == {'status': 'healthy'}


class TestRequestValidation:
    def test_bad_date_is_400(self):
        with pytest.raises(HTTPException) as exc_info:
            require_range('2026-13-01', None)
        assert exc_info.value.status_code == 400

    def test_inverted_range_is_400(self):
        with pytest.raises(HTTPException) as exc_info:
            require_range('2026-02-01', '2026-01-01')
        assert exc_info.value.status_code == 400

    def test_valid_range(self):
        assert require_range('2026-01-01', None) == ('2026-01-01', None)


class TestIngestionApiKey:
    @pytest.fixture
    def keyed_settings(self) -> Settings:
        return Settings(ingest_api_key='s3cret')

    @pytest.mark.parametrize('header', ['Bearer s3cret', 's3cret'])
    def test_accepts_bearer_and_bare_key(self, keyed_settings, header):
        assert verify_api_key(keyed_settings, authorization=header) is None

    @pytest.mark.parametrize('header', [None, '', 'Bearer wrong', 'Bearer '])
    def test_rejects_missing_or_wrong_key(self, keyed_settings, header):
        with pytest.raises(HTTPException) as exc_info:
            verify_api_key(keyed_settings, authorization=header)
        assert exc_info.value.status_code == 401

    def test_rejects_everything_without_configured_key(self):
        with pytest.raises(HTTPException) as exc_info:
            verify_api_key(Settings(ingest_api_key=None), authorization='Bearer anything')
        assert exc_info.value.status_code == 401

    def test_write_routes_require_the_key(self):
        assert any(dep.dependency is verify_api_key for dep in ingest_router.dependencies)

        delete_routes = [
            route for route in sales_router.routes
            if 'DELETE' in getattr(route, 'methods', set())
        ]
        assert delete_routes
        for route in delete_routes:
            assert any(dep.dependency is verify_api_key for dep in route.dependencies)

    def test_read_routes_are_open(self):
        for route in sales_router.routes:
            if 'GET' in getattr(route, 'methods', set()):
                assert not any(dep.dependency is verify_api_key for dep in route.dependencies)


# =============================================================================
# Ingestion
# =============================================================================


class TestIngestEndpoints:
    @pytest.mark.asyncio
    async def test_complaints_store_batch_and_event_log(self, document_store, sample_complaints):
        result = await ingest_complaints(DATE, sample_complaints)

        assert result.success
        assert result.rows_processed == 5
        assert result.rows_affected == 3
        assert len(result.errors) == 1

        daily = document_store.documents[repository.daily_complaints_key(DATE)]
        assert daily['totalComplaints'] == 3
        assert len(document_store.documents[repository.COMPLAINT_EVENTS_KEY]) == 3

    @pytest.mark.asyncio
    async def test_reingesting_complaints_does_not_grow_event_log(self, document_store, sample_complaints):
        await ingest_complaints(DATE, sample_complaints)
        await ingest_complaints(DATE, sample_complaints)
        assert len(document_store.documents[repository.COMPLAINT_EVENTS_KEY]) == 3

    @pytest.mark.asyncio
    async def test_complaints_failed_read_writes_nothing(self, unreachable_store, sample_complaints):
        with pytest.raises(HTTPException) as exc_info:
            await ingest_complaints(DATE, sample_complaints)
        assert exc_info.value.status_code == 500
        unreachable_store.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_corrected_reupload_replaces_the_dates_events(self, document_store, sample_complaints):
        other_day = Complaint(contractId='9', clientId='9', housemaidId='9',
                              complaintType='OWWA', creationDate='2026-01-28 09:00:00')
        await ingest_complaints('2026-01-28', [other_day])
        await ingest_complaints(DATE, sample_complaints)

        corrected = Complaint(
            contractId='1086364', housemaidId='12345', clientId='67890',
            complaintType='overseas employment certificate',
            creationDate='2026-01-29 20:00:00.000',
        )
        await ingest_complaints(DATE, [corrected])

        log = document_store.documents[repository.COMPLAINT_EVENTS_KEY]
        assert sorted(event['occurredAt'] for event in log) == [
            '2026-01-28 09:00:00', '2026-01-29 20:00:00.000',
        ]
        daily = document_store.documents[repository.daily_complaints_key(DATE)]
        assert daily['totalComplaints'] == 1

    @pytest.mark.asyncio
    async def test_identical_reupload_keeps_the_log(self, document_store, sample_complaints):
        await ingest_complaints(DATE, sample_complaints)
        before = list(document_store.documents[repository.COMPLAINT_EVENTS_KEY])
        await ingest_complaints(DATE, sample_complaints)
        assert document_store.documents[repository.COMPLAINT_EVENTS_KEY] == before

    @pytest.mark.asyncio
    async def test_complaints_replace_all(self, document_store, sample_complaints):
        await ingest_complaints(DATE, sample_complaints)
        fresh = Complaint(contractId='9', clientId='9', housemaidId='9',
                          complaintType='OWWA', creationDate='2026-02-02 09:00:00')

        result = await ingest_complaints('2026-02-02', [fresh], replaceAll=True)

        assert result.rows_affected == 1
        log = document_store.documents[repository.COMPLAINT_EVENTS_KEY]
        assert [event['contractId'] for event in log] == ['9']

    @pytest.mark.asyncio
    async def test_null_identifiers_do_not_reject_the_batch(self, document_store):
        complaints = [
            Complaint.model_validate({'contractId': None, 'housemaidId': None, 'clientId': '1',
                                      'complaintType': 'OEC', 'creationDate': '2026-01-29 10:00:00'}),
            Complaint.model_validate({'contractId': '2', 'housemaidId': '2', 'clientId': '2',
                                      'complaintType': 'OEC', 'creationDate': None}),
        ]
        result = await ingest_complaints(DATE, complaints)

        assert result.success
        assert result.rows_affected == 1
        assert result.errors[0].row_number == 2

    @pytest.mark.asyncio
    async def test_empty_batch_is_400(self, document_store):
        with pytest.raises(HTTPException) as exc_info:
            await ingest_complaints(DATE, [])
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_bad_path_date_is_400(self, document_store, sample_complaints):
        with pytest.raises(HTTPException) as exc_info:
            await ingest_complaints('29-01-2026', sample_complaints)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_storage_failure_is_500(self, sample_prospects):
        with patch('prospect_dashboard.services.repository.put_document',
                   new=AsyncMock(side_effect=OSError('disk full'))):
            with pytest.raises(HTTPException) as exc_info:
                await ingest_prospects(DATE, sample_prospects)
        assert exc_info.value.status_code == 500

    @pytest.mark.asyncio
    async def test_payments(self, document_store, sample_raw_payments):
        result = await ingest_payments(sample_raw_payments)

        assert result.rows_processed == 4
        assert result.rows_affected == 2
        stored = document_store.documents[repository.PAYMENTS_KEY]
        assert stored['receivedPayments'] == 1

    @pytest.mark.asyncio
    async def test_todos_merge(self, document_store, settings, sample_todo_rows):
        first = await ingest_todos(settings, sample_todo_rows)
        again = await ingest_todos(settings, sample_todo_rows)

        assert first.rows_affected == 2
        assert again.rows_affected == 0
        stored = document_store.documents[repository.OVERSEAS_SALES_KEY]
        assert stored['totalDedupedSales'] == 1
        assert stored['totalRawEvents'] == 2

    @pytest.mark.asyncio
    async def test_todos_failed_read_writes_nothing(self, unreachable_store, settings, sample_todo_rows):
        with pytest.raises(HTTPException) as exc_info:
            await ingest_todos(settings, sample_todo_rows)
        assert exc_info.value.status_code == 500
        unreachable_store.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_todos_replace_all(self, document_store, settings, sample_todo_rows):
        await ingest_todos(settings, sample_todo_rows)

        result = await ingest_todos(settings, sample_todo_rows[:1], replaceAll=True)

        assert result.rows_affected == 1
        stored = document_store.documents[repository.OVERSEAS_SALES_KEY]
        assert stored['totalRawEvents'] == 1

    @pytest.mark.asyncio
    async def test_prospects(self, document_store, sample_prospects):
        result = await ingest_prospects(DATE, sample_prospects)
        assert result.rows_affected == 4
        stored = document_store.documents[repository.daily_prospects_key(DATE)]
        assert len(stored['prospects']) == 4


# =============================================================================
# Sales
# =============================================================================


class TestSalesEndpoints:
    @pytest.mark.asyncio
    async def test_overseas_without_data(self, document_store, settings):
        summary = await get_overseas_sales(settings, startDate=None, endDate=None)
        assert summary.totalSales == 0
        assert summary.salesInRange is None

    @pytest.mark.asyncio
    async def test_overseas_with_range(self, document_store, settings, sample_todo_rows):
        await ingest_todos(settings, sample_todo_rows)

        summary = await get_overseas_sales(settings, startDate='2026-01-01', endDate='2026-01-31')

        assert summary.totalSales == 1
        assert summary.totalRawEvents == 2
        assert summary.salesByMonth == {'2026-01': 1}
        assert summary.salesInRange == 1

    @pytest.mark.asyncio
    async def test_complaint_sales(self, document_store, settings, sample_complaints):
        await ingest_complaints(DATE, sample_complaints)

        data = await get_complaint_sales(settings)

        assert data.services['oec'].uniqueSales == 1
        assert data.services['ttlSingle'].uniqueSales == 1
        assert data.rawComplaintsCount == 3

    @pytest.mark.asyncio
    async def test_clear_complaints(self, document_store, settings, sample_complaints):
        await ingest_complaints(DATE, sample_complaints)

        response = await clear_complaint_sales(settings, startDate=DATE, endDate=DATE)

        assert response.removedEvents == 3
        assert response.remainingEvents == 0
        assert response.data.summary.totalUniqueSales == 0
        assert document_store.documents[repository.COMPLAINT_EVENTS_KEY] == []

    @pytest.mark.asyncio
    async def test_overseas_uses_current_window_setting(self, document_store, settings, sample_todo_rows):
        await ingest_todos(settings, sample_todo_rows)

        summary = await get_overseas_sales(Settings(sale_window_months=1), startDate=None, endDate=None)

        # 10 Jan and 20 Feb are more than one month apart
        assert summary.totalSales == 2
        assert summary.salesByMonth == {'2026-01': 1, '2026-02': 1}

    @pytest.mark.asyncio
    async def test_clear_failed_read_writes_nothing(self, unreachable_store, settings):
        with pytest.raises(HTTPException) as exc_info:
            await clear_complaint_sales(settings, startDate=DATE, endDate=DATE)
        assert exc_info.value.status_code == 500
        unreachable_store.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_clear_requires_a_bound(self, document_store, settings):
        with pytest.raises(HTTPException) as exc_info:
            await clear_complaint_sales(settings, startDate=None, endDate=None)
        assert exc_info.value.status_code == 400


# =============================================================================
# Conversions
# =============================================================================


class TestConversionsEndpoint:
    @pytest.mark.asyncio
    async def test_missing_prospects_is_zero_filled(self, document_store, settings):
        response = await get_conversions_with_complaints(DATE, settings)
        assert response.totalProspects == 0
        assert response.error is not None
        assert len(response.services) == 5

    @pytest.mark.asyncio
    async def test_missing_payments_is_zero_filled(self, document_store, settings, sample_prospects):
        await ingest_prospects(DATE, sample_prospects)
        response = await get_conversions_with_complaints(DATE, settings)
        assert response.totalConversions == 0
        assert response.error == 'No payment data available'

    @pytest.mark.asyncio
    async def test_end_to_end(
        self, document_store, settings, sample_prospects, sample_raw_payments, sample_complaints,
    ):
        await ingest_prospects(DATE, sample_prospects)
        await ingest_payments(sample_raw_payments)
        await ingest_complaints(DATE, sample_complaints)

        response = await get_conversions_with_complaints(DATE, settings)

        assert response.error is None
        assert response.totalProspects == 3
        oec = response.services['oec']
        assert (oec.prospects, oec.conversions, oec.cleanConversions) == (1, 1, 0)
        travel = response.services['travelVisa']
        assert travel.prospects == 1
        # The Lebanon payment is pre-PDP, so it does not count
        assert travel.conversions == 0
        assert travel.withComplaints == 1

    @pytest.mark.asyncio
    async def test_complaints_are_optional(
        self, document_store, settings, sample_prospects, sample_raw_payments,
    ):
        await ingest_prospects(DATE, sample_prospects)
        await ingest_payments(sample_raw_payments)

        response = await get_conversions_with_complaints(DATE, settings)

        assert response.totalCleanConversions == 1
        assert response.services['oec'].cleanConversionRate == 100.0


# =============================================================================
# P&L
# =============================================================================


class TestPnLEndpoints:
    @pytest.mark.asyncio
    async def test_no_complaint_data(self, document_store, settings, config_store):
        response = await get_pnl(config_store, settings, startDate=None, endDate=None)
        assert response.source == PnLSource.NONE
        assert response.aggregated is None

    @pytest.mark.asyncio
    async def test_pnl_over_complaint_sales(self, document_store, settings, config_store):
        complaints = [
            Complaint(contractId='1', clientId='a', housemaidId='m1',
                      complaintType='Travel to Jordan', creationDate='2026-03-02 10:00:00.000'),
            Complaint(contractId='2', clientId='b', housemaidId='m2',
                      complaintType='Ethiopian Passport Renewal', creationDate='2026-03-03 10:00:00.000'),
        ]
        await ingest_complaints('2026-03-02', complaints)

        response = await get_pnl(config_store, settings, startDate='2026-03-01', endDate='2026-03-31')

        assert response.source == PnLSource.COMPLAINTS
        assert response.monthsInRange == 1
        assert response.totalComplaints == 2
        summary = response.aggregated.summary
        assert summary.totalRevenue == 420 + 1450
        assert summary.totalGrossProfit == 100 + 120

    @pytest.mark.asyncio
    async def test_config_round_trip(self, document_store, config_store):
        history = await get_pnl_config(config_store)
        assert len(history.configurations) == 2

        update = PnLConfigUpdate(
            services={ServiceKey.OEC: ServiceConfig(unitCost=70, serviceFee=10)},
            effectiveDate='2026-04-01',
            updatedBy='finance',
        )
        history = await add_pnl_config(update, config_store)
        assert len(history.configurations) == 3

        snapshot = await get_effective_pnl_config(config_store, date='2026-04-02')
        assert snapshot.services['oec'].serviceFee == 10

    @pytest.mark.asyncio
    async def test_bad_effective_date_is_400(self, document_store, config_store):
        with pytest.raises(HTTPException) as exc_info:
            await add_pnl_config(PnLConfigUpdate(effectiveDate='April'), config_store)
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_add_config_failed_read_writes_nothing(self, unreachable_store, config_store):
        update = PnLConfigUpdate(effectiveDate='2026-04-01')
        with pytest.raises(HTTPException) as exc_info:
            await add_pnl_config(update, config_store)
        assert exc_info.value.status_code == 500
        unreachable_store.assert_not_awaited()


# =============================================================================
# NPS
# =============================================================================


NPS_UPLOAD = {
    'Feb 9': NPSDayData(date='Feb 9', scores=[
        NPSScoreEntry(nps_score=10, services={'TOTAL': 6, 'OEC': 4}),
        NPSScoreEntry(nps_score=8, services={'TOTAL': 2, 'OEC': 1}),
        NPSScoreEntry(nps_score=3, services={'TOTAL': 2}),
    ]),
    '2026-02-12': NPSDayData(scores=[
        NPSScoreEntry(nps_score=9, services={'TOTAL': 4, 'Travel Visa': 4}),
    ]),
    'someday': NPSDayData(scores=[
        NPSScoreEntry(nps_score=0, services={'TOTAL': 100}),
    ]),
}


class TestNPSEndpoints:
    @pytest.mark.asyncio
    async def test_ingest_rejects_unreadable_days(self, document_store, settings):
        result = await ingest_nps(settings, NPS_UPLOAD)

        assert result.rows_processed == 3
        assert result.rows_affected == 2
        assert result.errors[0].row_number == 3
        assert set(document_store.documents[repository.NPS_KEY]) == {'Feb 9', '2026-02-12'}

    @pytest.mark.asyncio
    async def test_empty_upload_is_400(self, document_store, settings):
        with pytest.raises(HTTPException) as exc_info:
            await ingest_nps(settings, {})
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_no_data_is_404(self, document_store, settings):
        with pytest.raises(HTTPException) as exc_info:
            await get_nps(settings, startDate=None, endDate=None)
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_aggregates_range(self, document_store, settings):
        await ingest_nps(settings, NPS_UPLOAD)

        data = await get_nps(settings, startDate='2026-02-01', endDate='2026-02-10')

        assert data.overall.total == 10
        assert data.overall.npsScore == 40.0
        assert [s.service for s in data.services] == ['OEC']
        assert data.dateRange.endDate == '2026-02-10'

    @pytest.mark.asyncio
    async def test_dates(self, document_store, settings):
        await ingest_nps(settings, NPS_UPLOAD)
        response = await get_nps_dates(settings)
        assert response.dates == ['2026-02-09', '2026-02-12']
