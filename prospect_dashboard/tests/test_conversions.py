"""
Tests for the Clean Conversion Calculator.
"""

import pytest

from prospect_dashboard.models import (
    Complaint,
    ConversionCheck,
    Payment,
    PaymentStatus,
    Prospect,
    ProspectService,
    ServiceConversionCheck,
    ServiceKey,
)
from prospect_dashboard.services.conversions import (
    build_payment_lookup,
    calculate_clean_conversion_rates,
    check_complaints_for_prospect,
    compute_conversions_for_date,
    empty_conversions_response,
    get_conversions_with_complaint_check,
)


DATE = '2026-01-29'


def _payment(contract_id, service, date=DATE, status=PaymentStatus.RECEIVED, payment_type='x'):
    return Payment(
        paymentType=payment_type,
        contractId=contract_id,
        status=status,
        dateOfPayment=date,
        service=service,
    )


def _complaint(complaint_type, contract_id='', client_id='', housemaid_id=''):
    return Complaint(
        contractId=contract_id,
        clientId=client_id,
        housemaidId=housemaid_id,
        complaintType=complaint_type,
        creationDate=f'{DATE} 10:00:00.000',
    )


class TestPaymentLookup:
    def test_groups_by_contract_and_category(self):
        lookup = build_payment_lookup([
            _payment('1', ServiceKey.OEC),
            _payment('1', ServiceKey.TTL_SINGLE),
            _payment('1', ServiceKey.GCC, date='2026-01-30'),
            _payment('2', None),
            _payment('', ServiceKey.OEC),
        ])
        assert set(lookup) == {'1'}
        assert lookup['1'][ProspectService.OEC] == [DATE]
        assert lookup['1'][ProspectService.TRAVEL_VISA] == [DATE, '2026-01-30']


class TestComplaintCheck:
    def test_links_by_contract_maid_or_client(self):
        prospect = Prospect(contractId='1', clientId='c1', maidId='m1', isOECProspect=True)
        complaints = [
            _complaint('OEC', contract_id='1'),
            _complaint('overseas', housemaid_id='m1'),
            _complaint('OEC', client_id='c1'),
            _complaint('OEC', contract_id='other'),
        ]
        checks = check_complaints_for_prospect(prospect, complaints, [ProspectService.OEC])
        assert checks[ProspectService.OEC].hasComplaint
        assert checks[ProspectService.OEC].complaintTypes == ['OEC', 'overseas', 'OEC']

    def test_any_travel_complaint_satisfies_travel_visa(self):
        prospect = Prospect(contractId='1', isTravelVisaProspect=True)
        checks = check_complaints_for_prospect(
            prospect,
            [_complaint('Tourist Visa to Egypt - Double Entry', contract_id='1')],
            [ProspectService.TRAVEL_VISA],
        )
        assert checks[ProspectService.TRAVEL_VISA].hasComplaint

    def test_unmapped_and_other_category_complaints_are_ignored(self):
        prospect = Prospect(contractId='1', isOECProspect=True)
        checks = check_complaints_for_prospect(
            prospect,
            [_complaint('Maid Replacement', contract_id='1'), _complaint('OWWA', contract_id='1')],
            [ProspectService.OEC],
        )
        assert not checks[ProspectService.OEC].hasComplaint

    def test_empty_prospect_ids_do_not_match_empty_complaint_ids(self):
        prospect = Prospect(contractId='1', clientId=None, maidId=None, isOECProspect=True)
        checks = check_complaints_for_prospect(
            prospect,
            [_complaint('OEC', contract_id='2')],
            [ProspectService.OEC],
        )
        assert not checks[ProspectService.OEC].hasComplaint


class TestConversionChecks:
    def test_paid_and_complained_is_converted_but_not_clean(self):
        prospect = Prospect(contractId='1086364', isOECProspect=True)
        lookup = build_payment_lookup([_payment('1086364', ServiceKey.OEC)])
        complaints = [_complaint('overseas employment certificate', contract_id='1086364')]

        checks = get_conversions_with_complaint_check([prospect], lookup, complaints)
        oec = checks[0].services['oec']
        assert oec.converted
        assert oec.hasComplaint
        assert oec.paymentDates == [DATE]

        stats = calculate_clean_conversion_rates(checks)
        assert stats.stats['oec'].conversions == 1
        assert stats.stats['oec'].cleanConversions == 0

    def test_non_converting_prospects_are_kept(self):
        checks = get_conversions_with_complaint_check(
            [Prospect(contractId='1', isOWWAProspect=True)], {}, []
        )
        assert len(checks) == 1
        assert not checks[0].services['owwa'].converted

    def test_only_interested_categories_are_listed(self):
        lookup = build_payment_lookup([_payment('1', ServiceKey.OWWA)])
        checks = get_conversions_with_complaint_check(
            [Prospect(contractId='1', isOECProspect=True)], lookup, []
        )
        assert list(checks[0].services) == ['oec']
        assert not checks[0].services['oec'].converted

    def test_prospects_without_contract_or_interest_are_skipped(self):
        checks = get_conversions_with_complaint_check(
            [Prospect(contractId=None, isOECProspect=True), Prospect(contractId='1')],
            {},
            [],
        )
        assert checks == []


class TestCleanConversionRates:
    def _check(self, service, converted, has_complaint):
        return ConversionCheck(
            contractId='x',
            services={service: ServiceConversionCheck(converted=converted, hasComplaint=has_complaint)},
        )

    def test_rates(self):
        checks = [
            self._check('oec', True, False),
            self._check('oec', True, True),
            self._check('oec', False, True),
            self._check('oec', False, False),
        ]
        stats = calculate_clean_conversion_rates(checks)
        oec = stats.stats['oec']
        assert (oec.prospects, oec.conversions, oec.cleanConversions, oec.withComplaints) == (4, 2, 1, 2)
        assert stats.rates['oec'].overall == pytest.approx(50.0)
        assert stats.rates['oec'].clean == pytest.approx(25.0)

    def test_zero_prospects_gives_zero_rates(self):
        stats = calculate_clean_conversion_rates([])
        assert set(stats.stats) == {s.value for s in ProspectService}
        for rates in stats.rates.values():
            assert rates.overall == 0
            assert rates.clean == 0

    def test_ordering_invariants(self):
        checks = [
            self._check(service, converted, complaint)
            for service in ('oec', 'owwa', 'travelVisa')
            for converted in (True, False)
            for complaint in (True, False)
        ]
        stats = calculate_clean_conversion_rates(checks)
        for service, stat in stats.stats.items():
            assert stat.cleanConversions <= stat.conversions <= stat.prospects
            assert stats.rates[service].clean <= stats.rates[service].overall


class TestComputeConversionsForDate:
    def test_end_to_end(self, sample_prospects):
        payments = [
            _payment('1086364', ServiceKey.OEC),
            _payment('2001', ServiceKey.TTL, status=PaymentStatus.PRE_PDP),
            _payment('5001', ServiceKey.OWWA, date='2026-01-28'),
        ]
        complaints = [_complaint('OEC', contract_id='1086364')]

        response = compute_conversions_for_date(DATE, sample_prospects, payments, complaints, 1)

        assert response.totalProspects == 3
        assert response.totalConversions == 1
        assert response.totalCleanConversions == 0
        assert response.services['oec'].conversionRate == 100.0
        assert response.services['oec'].withComplaints == 1
        assert response.services['travelVisa'].conversions == 0
        assert response.services['owwa'].conversions == 0
        assert len(response.conversions) == 3

    def test_rates_are_rounded(self):
        prospects = [Prospect(contractId=str(i), isOECProspect=True) for i in range(3)]
        response = compute_conversions_for_date(
            DATE, prospects, [_payment('0', ServiceKey.OEC)], [], rate_decimals=2
        )
        assert response.services['oec'].conversionRate == 33.33
        assert response.services['oec'].cleanConversionRate == 33.33

    def test_empty_response_is_zero_filled(self):
        response = empty_conversions_response(DATE, error='No payment data available')
        assert response.totalProspects == 0
        assert set(response.services) == {s.value for s in ProspectService}
        assert response.error == 'No payment data available'
