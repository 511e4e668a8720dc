"""
Pytest Configuration and Shared Fixtures for Prospect Dashboard Tests.

Provides:
- Mock asyncpg pool fixtures so storage code runs without a database
- An in-memory document store patched over the repository functions
- Sample complaints, payments, to-do rows and prospects shaped like the
  upstream exports
- Settings cache reset between tests

Async tests are marked individually with @pytest.mark.asyncio.
"""

from typing import Any, Dict, Generator, List
from unittest.mock import AsyncMock, Mock, patch

import asyncpg
import pytest

from prospect_dashboard.core.config import get_settings
from prospect_dashboard.models import (
    Complaint,
    EventSource,
    Prospect,
    RawEvent,
    RawPayment,
    ServiceKey,
)


# ============================================================
# PYTEST HOOKS
# ============================================================

def pytest_configure(config) -> None:
    """
    Register custom markers.

    - storage: tests that exercise the repository against a mocked pool
    """
    config.addinivalue_line(
        'markers',
        'storage: tests exercising the document repository with a mocked pool'
    )


# ============================================================
# SETTINGS
# ============================================================

@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Clear the cached Settings before and after every test."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


# ============================================================
# DATABASE FIXTURES
# ============================================================

@pytest.fixture
def mock_db_pool() -> AsyncMock:
    """
    Create a mock asyncpg connection pool.

    Methods Mocked:
        - pool.acquire(): Returns async context manager yielding the connection
        - conn.execute(query, *args): returns 'INSERT 0 1'
        - conn.fetch(query, *args): returns []
        - conn.fetchrow(query, *args): returns None
    """
    pool = AsyncMock()

    conn = AsyncMock()
    conn.execute = AsyncMock(return_value='INSERT 0 1')
    conn.fetch = AsyncMock(return_value=[])
    conn.fetchrow = AsyncMock(return_value=None)
    conn.fetchval = AsyncMock(return_value=None)

    acquire_context = AsyncMock()
    acquire_context.__aenter__ = AsyncMock(return_value=conn)
    acquire_context.__aexit__ = AsyncMock(return_value=None)
    pool.acquire = Mock(return_value=acquire_context)
    pool.close = AsyncMock(return_value=None)

    # Expose the connection for assertions
    pool.conn = conn
    return pool


@pytest.fixture
def mock_database(mock_db_pool: AsyncMock) -> Generator[AsyncMock, None, None]:
    """Patch get_db_pool so the query helpers use mock_db_pool."""
    with patch(
        'prospect_dashboard.core.database.get_db_pool',
        new=AsyncMock(return_value=mock_db_pool),
    ):
        yield mock_db_pool


class InMemoryDocuments:
    """Dict-backed stand-in for the document repository."""

    def __init__(self) -> None:
        self.documents: Dict[str, Any] = {}

    async def get_document(self, key: str, default: Any = None) -> Any:
        return self.documents.get(key, default)

    async def put_document(self, key: str, payload: Any) -> None:
        self.documents[key] = payload


@pytest.fixture
def document_store() -> Generator[InMemoryDocuments, None, None]:
    """
    Patch the repository read/write functions with an in-memory store.

    Every module reaches storage through `repository.get_document`,
    `repository.load_document` and `repository.put_document`, so patching the
    module attributes covers the API handlers and the P&L configuration store
    alike.
    """
    store = InMemoryDocuments()
    with patch('prospect_dashboard.services.repository.get_document', new=store.get_document), \
            patch('prospect_dashboard.services.repository.load_document', new=store.get_document), \
            patch('prospect_dashboard.services.repository.put_document', new=store.put_document):
        yield store


@pytest.fixture
def unreachable_store() -> Generator[AsyncMock, None, None]:
    """
    Make every document read fail with a connection error.

    Yields the mocked write helper so tests can assert nothing was written.
    """
    with patch('prospect_dashboard.services.repository.execute_query_one',
               new=AsyncMock(side_effect=asyncpg.PostgresError('connection reset'))), \
            patch('prospect_dashboard.services.repository.execute_command',
                  new=AsyncMock(return_value='INSERT 0 1')) as execute_command:
        yield execute_command


# ============================================================
# SAMPLE DATA
# ============================================================

def make_event(
    event_id: str,
    occurred_at: Any,
    contract_id: str = '1086364',
    client_id: str = '67890',
    maid_id: str = '12345',
    service_key: Any = ServiceKey.OEC,
    source: EventSource = EventSource.TODO,
) -> RawEvent:
    """Build a RawEvent with the identity used throughout the tests."""
    return RawEvent(
        id=event_id,
        contractId=contract_id,
        clientId=client_id,
        maidId=maid_id,
        serviceKey=service_key,
        label='Overseas Employment Certificate',
        occurredAt=occurred_at,
        source=source,
    )


@pytest.fixture
def sample_complaints() -> List[Complaint]:
    """Complaint rows for 2026-01-29 across three services."""
    return [
        Complaint(
            contractId='1086364',
            housemaidId='12345',
            clientId='67890',
            complaintType='overseas employment certificate',
            creationDate='2026-01-29 21:00:35.000',
        ),
        Complaint(
            contractId='1086364',
            housemaidId='12345',
            clientId='67890',
            complaintType='overseas employment certificate',
            creationDate='2026-01-29 21:00:35.000',
        ),
        Complaint(
            contractId='2001',
            housemaidId='501',
            clientId='901',
            complaintType='Tourist Visa to Lebanon - Single Entry',
            creationDate='2026-01-29 10:15:00.000',
        ),
        Complaint(
            contractId='3001',
            housemaidId='601',
            clientId='902',
            complaintType='Unrelated Request',
            creationDate='2026-01-29 11:00:00.000',
        ),
        Complaint(
            contractId='4001',
            housemaidId='701',
            clientId='903',
            complaintType='owwa registration',
            creationDate='',
        ),
    ]


@pytest.fixture
def sample_raw_payments() -> List[RawPayment]:
    """Billing export rows using the upper-case headers."""
    return [
        RawPayment(**{
            'PAYMENT_TYPE': 'Overseas Employment Certificate',
            'CREATION_DATE': '2026-01-29 08:00:00.000',
            'CONTRACT_ID': '1086364',
            'CLIENT_ID': '67890',
            'STATUS': 'RECEIVED',
            'AMOUNT_OF_PAYMENT': 'AED 1,250.00',
            'DATE_OF_PAYMENT': '2026-01-29',
        }),
        RawPayment(**{
            'PAYMENT_TYPE': 'Overseas Employment Certificate',
            'CREATION_DATE': '2026-01-29 08:00:00.000',
            'CONTRACT_ID': '1086364',
            'CLIENT_ID': '67890',
            'STATUS': 'RECEIVED',
            'AMOUNT_OF_PAYMENT': 'AED 1,250.00',
            'DATE_OF_PAYMENT': '2026-01-29',
        }),
        RawPayment(**{
            'PAYMENT_TYPE': 'Tourist Visa to Lebanon',
            'CONTRACT_ID': '2001',
            'CLIENT_ID': '901',
            'STATUS': 'PRE_PDP',
            'AMOUNT_OF_PAYMENT': 425,
            'DATE_OF_PAYMENT': '2026-01-29',
        }),
        RawPayment(**{
            'PAYMENT_TYPE': 'Monthly Fee',
            'CONTRACT_ID': '',
            'STATUS': 'RECEIVED',
            'DATE_OF_PAYMENT': '2026-01-29',
        }),
    ]


@pytest.fixture
def sample_todo_rows() -> List[Dict[str, Any]]:
    """To-do export rows with mixed header spellings."""
    return [
        {
            'TODO_ID': 't1',
            'COMPLAINT_TYPE': 'Overseas Employment Certificate',
            'CONTRACT_ID': 1086364,
            'CLIENT_ID': '67890',
            'HOUSEMAID_ID': '12345',
            'CREATION_DATE': '2026-01-10 09:12:44.000',
        },
        {
            'TODO_ID': 't2',
            'COMPLAINT_TYPE': 'overseas employment renewal',
            'CONTRACT_ID': 1086364,
            'CLIENT_ID': '67890',
            'HOUSEMAID_ID': '12345',
            'CREATION_DATE': '2026-02-20 09:00:00.000',
        },
        {
            'TODO_ID': 't3',
            'COMPLAINT_TYPE': 'Passport Renewal',
            'CONTRACT_ID': 2001,
            'CLIENT_ID': '901',
            'HOUSEMAID_ID': '501',
            'CREATION_DATE': '2026-01-11 09:00:00.000',
        },
    ]


@pytest.fixture
def sample_prospects() -> List[Prospect]:
    """Classified prospects for 2026-01-29."""
    return [
        Prospect(
            id='p1',
            conversationId='c1',
            contractId='1086364',
            clientId='67890',
            maidId='12345',
            isOECProspect=True,
        ),
        Prospect(
            id='p2',
            conversationId='c2',
            contractId='2001',
            clientId='901',
            maidId='501',
            isTravelVisaProspect=True,
            travelVisaCountries=['Lebanon'],
        ),
        Prospect(
            id='p3',
            conversationId='c3',
            contractId='5001',
            clientId='904',
            maidId='801',
            isOWWAProspect=True,
        ),
        Prospect(
            id='p4',
            conversationId='c4',
            contractId=None,
            isOECProspect=True,
        ),
    ]
