"""
API tests for the exchanges app.

Tests cover:
- The collection endpoint contract (POST create, PUT action, DELETE ?id=, GET list)
- Detail, history and draft line endpoints
- Error mapping of service exceptions to HTTP responses
"""

import pytest
from decimal import Decimal
from django.urls import reverse
from rest_framework import status
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.models import User
from apps.exchanges.models import Exchange, ExchangeStatus
from apps.inventory.models import StockLot


COLLECTION_URL = '/api/exchanges/'


def _detail_url(exchange_id):
    return reverse('exchanges:exchange-detail', kwargs={'pk': exchange_id})


def _put(client, exchange_id, action, **payload):
    return client.put(
        COLLECTION_URL,
        {'id': str(exchange_id), 'action': action, **payload},
        format='json',
    )


@pytest.mark.django_db
class TestExchangeCreateAPI:

    def test_create_outgoing_draft(self, owner_client, manual_partner, lot_a, lot_b):
        response = owner_client.post(COLLECTION_URL, {
            'partner_establishment_id': str(manual_partner.id),
            'direction': 'outgoing',
            'reason': 'Rupture fournisseur',
            'lines': [
                {'stock_lot_id': str(lot_a.id), 'quantity': 5},
                {'stock_lot_id': str(lot_b.id), 'quantity': 2},
            ],
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['reference'] == 'CFR-000001'
        assert response.data['status'] == ExchangeStatus.DRAFT
        assert Decimal(response.data['estimated_value']) == Decimal('100.00')
        assert len(response.data['lines']) == 2
        assert response.data['version'] == 1
        assert 'send' in response.data['allowed_actions']
        assert response.data['source_establishment']['name'] == 'Pharmacie du Centre'

    def test_create_without_lines_rejected(self, owner_client, manual_partner):
        response = owner_client.post(COLLECTION_URL, {
            'partner_establishment_id': str(manual_partner.id),
            'direction': 'outgoing',
            'lines': [],
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert Exchange.objects.count() == 0

    def test_create_above_stock_returns_conflict(self, owner_client, manual_partner, lot_b):
        response = owner_client.post(COLLECTION_URL, {
            'partner_establishment_id': str(manual_partner.id),
            'direction': 'outgoing',
            'lines': [{'stock_lot_id': str(lot_b.id), 'quantity': 9}],
        }, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['code'] == 'insufficient_stock'
        assert response.data['available'] == 4
        assert response.data['requested'] == 9

    def test_create_with_unknown_partner(self, owner_client, partner_establishment, lot_a):
        response = owner_client.post(COLLECTION_URL, {
            'partner_establishment_id': str(partner_establishment.id),
            'direction': 'outgoing',
            'lines': [{'stock_lot_id': str(lot_a.id), 'quantity': 1}],
        }, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['code'] == 'not_found'

    def test_list_requires_principal_establishment(self, api_client):
        lonely = User.objects.create_user(email='lonely@example.com', password='TestPass123!')
        refresh = RefreshToken.for_user(lonely)
        api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')

        response = api_client.get(COLLECTION_URL)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['code'] == 'no_principal_establishment'

    def test_requires_authentication(self, api_client):
        response = api_client.get(COLLECTION_URL)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestExchangeActionAPI:

    def test_scenario_outgoing_manual_partner(self, owner_client, manual_outgoing_draft, lot_a, lot_b):
        exchange_id = manual_outgoing_draft.id

        response = _put(owner_client, exchange_id, 'send')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == ExchangeStatus.PENDING_PAYMENT
        assert StockLot.objects.get(pk=lot_a.pk).quantity_available == 7
        assert StockLot.objects.get(pk=lot_b.pk).quantity_available == 2

        response = _put(owner_client, exchange_id, 'confirm_payment',
                        amount='60.00', payment_method='transfer', note='acompte')
        assert response.status_code == status.HTTP_200_OK
        assert Decimal(response.data['amount_paid']) == Decimal('60.00')
        assert response.data['status'] == ExchangeStatus.PAYMENT_CONFIRMED

        response = _put(owner_client, exchange_id, 'confirm_payment',
                        amount='50.00', payment_method='cash')
        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == 'amount_exceeds_due'
        assert response.data['remaining'] == '40.00'

        response = _put(owner_client, exchange_id, 'confirm_payment',
                        amount='40.00', payment_method='cash')
        assert Decimal(response.data['amount_paid']) == Decimal('100.00')
        assert Decimal(response.data['outstanding_balance']) == Decimal('0')

        response = _put(owner_client, exchange_id, 'close')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == ExchangeStatus.CLOSED
        assert response.data['allowed_actions'] == []

    def test_zero_value_exchange_settles(self, owner_client, manual_partner, lot_a):
        response = owner_client.post(COLLECTION_URL, {
            'partner_establishment_id': str(manual_partner.id),
            'direction': 'outgoing',
            'lines': [{'stock_lot_id': str(lot_a.id), 'quantity': 3, 'unit_price': '0.00'}],
        }, format='json')
        exchange_id = response.data['id']
        _put(owner_client, exchange_id, 'send')

        response = _put(owner_client, exchange_id, 'confirm_payment', amount='0.00', payment_method='other')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == ExchangeStatus.PAYMENT_CONFIRMED
        assert 'close' in response.data['allowed_actions']

        response = _put(owner_client, exchange_id, 'close')
        assert response.data['status'] == ExchangeStatus.CLOSED

    def test_scenario_incoming_refused_by_partner(self, owner_client, partner_client, linked_incoming_draft):
        exchange_id = linked_incoming_draft.id

        response = _put(owner_client, exchange_id, 'send')
        assert response.data['status'] == ExchangeStatus.PENDING_ACCEPTANCE

        response = partner_client.get(COLLECTION_URL, {'recus': 'true'})
        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 1
        assert response.data['results'][0]['id'] == str(exchange_id)

        response = _put(partner_client, exchange_id, 'refuse', refusal_reason='wrong price')
        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == ExchangeStatus.REFUSED
        assert response.data['refusal_reason'] == 'wrong price'

    def test_refuse_without_reason(self, owner_client, partner_client, linked_outgoing_draft):
        _put(owner_client, linked_outgoing_draft.id, 'send')

        response = _put(partner_client, linked_outgoing_draft.id, 'refuse')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'refusal_reason' in response.data

    def test_confirm_payment_requires_method(self, owner_client, manual_outgoing_draft):
        _put(owner_client, manual_outgoing_draft.id, 'send')

        response = _put(owner_client, manual_outgoing_draft.id, 'confirm_payment', amount='10.00')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'payment_method' in response.data

    def test_invalid_transition(self, owner_client, manual_outgoing_draft):
        response = _put(owner_client, manual_outgoing_draft.id, 'close')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['code'] == 'invalid_transition'
        assert response.data['status'] == ExchangeStatus.DRAFT

    def test_wrong_party(self, owner_client, linked_outgoing_draft):
        _put(owner_client, linked_outgoing_draft.id, 'send')

        response = _put(owner_client, linked_outgoing_draft.id, 'accept')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['code'] == 'not_exchange_party'

    def test_stale_version(self, owner_client, manual_outgoing_draft, lot_a):
        response = _put(owner_client, manual_outgoing_draft.id, 'send', expected_version=3)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['code'] == 'concurrency_conflict'
        assert StockLot.objects.get(pk=lot_a.pk).quantity_available == 12

    def test_insufficient_stock_on_send(self, owner_client, manual_outgoing_draft, lot_b):
        StockLot.objects.filter(pk=lot_b.pk).update(quantity_available=1)

        response = _put(owner_client, manual_outgoing_draft.id, 'send')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['code'] == 'insufficient_stock'
        assert Exchange.objects.get(pk=manual_outgoing_draft.pk).status == ExchangeStatus.DRAFT

    def test_unknown_action(self, owner_client, manual_outgoing_draft):
        response = _put(owner_client, manual_outgoing_draft.id, 'teleport')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_outsider_gets_not_found(self, outsider_client, manual_outgoing_draft):
        response = _put(outsider_client, manual_outgoing_draft.id, 'send')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_delete_action_via_put(self, owner_client, manual_outgoing_draft):
        response = _put(owner_client, manual_outgoing_draft.id, 'delete')

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Exchange.objects.filter(pk=manual_outgoing_draft.pk).exists()


@pytest.mark.django_db
class TestExchangeDeleteAPI:

    def test_delete_draft(self, owner_client, manual_outgoing_draft):
        response = owner_client.delete(f'{COLLECTION_URL}?id={manual_outgoing_draft.id}')

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Exchange.objects.filter(pk=manual_outgoing_draft.pk).exists()

    def test_delete_sent_exchange_rejected(self, owner_client, manual_outgoing_draft):
        _put(owner_client, manual_outgoing_draft.id, 'send')

        response = owner_client.delete(f'{COLLECTION_URL}?id={manual_outgoing_draft.id}')

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['code'] == 'invalid_transition'

    def test_delete_requires_id(self, owner_client):
        response = owner_client.delete(COLLECTION_URL)

        assert response.status_code == status.HTTP_400_BAD_REQUEST


@pytest.mark.django_db
class TestExchangeReadAPI:

    def test_list_own_exchanges(self, owner_client, manual_outgoing_draft, linked_incoming_draft):
        response = owner_client.get(COLLECTION_URL)

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 2

    def test_list_filters(self, owner_client, manual_outgoing_draft, linked_incoming_draft, manual_partner):
        response = owner_client.get(COLLECTION_URL, {'direction': 'incoming'})
        assert response.data['count'] == 1
        assert response.data['results'][0]['id'] == str(linked_incoming_draft.id)

        response = owner_client.get(COLLECTION_URL, {'partner': str(manual_partner.id)})
        assert response.data['count'] == 1

        response = owner_client.get(COLLECTION_URL, {'status': 'closed'})
        assert response.data['count'] == 0

    def test_list_pagination(self, owner_client, manual_outgoing_draft, linked_incoming_draft):
        response = owner_client.get(COLLECTION_URL, {'page_size': 1})

        assert response.data['count'] == 2
        assert len(response.data['results']) == 1
        assert response.data['next'] is not None

    def test_invalid_date_range(self, owner_client):
        response = owner_client.get(COLLECTION_URL, {'date_from': '2026-05-02', 'date_to': '2026-05-01'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_retrieve(self, owner_client, manual_outgoing_draft):
        response = owner_client.get(_detail_url(manual_outgoing_draft.id))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['reference'] == manual_outgoing_draft.reference
        assert [line['position'] for line in response.data['lines']] == [0, 1]

    def test_counterparty_cannot_retrieve_draft(self, partner_client, linked_outgoing_draft):
        response = partner_client.get(_detail_url(linked_outgoing_draft.id))

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_counterparty_sees_accept_refuse_actions(self, owner_client, partner_client, linked_outgoing_draft):
        _put(owner_client, linked_outgoing_draft.id, 'send')

        response = partner_client.get(_detail_url(linked_outgoing_draft.id))

        assert response.status_code == status.HTTP_200_OK
        assert sorted(response.data['allowed_actions']) == ['accept', 'refuse']

    def test_history(self, owner_client, manual_outgoing_draft):
        _put(owner_client, manual_outgoing_draft.id, 'send')

        url = reverse('exchanges:exchange-history', kwargs={'pk': manual_outgoing_draft.id})
        response = owner_client.get(url)

        assert response.status_code == status.HTTP_200_OK
        assert [event['action'] for event in response.data] == ['create', 'send']
        assert response.data[1]['actor_email'] == 'centre@example.com'


@pytest.mark.django_db
class TestExchangeLinesAPI:

    def _lines_url(self, exchange_id):
        return reverse('exchanges:exchange-lines', kwargs={'exchange_pk': exchange_id})

    def _line_url(self, exchange_id, line_id):
        return reverse(
            'exchanges:exchange-line-detail',
            kwargs={'exchange_pk': exchange_id, 'pk': line_id},
        )

    def test_add_line(self, owner_client, manual_incoming_draft, product_p):
        response = owner_client.post(self._lines_url(manual_incoming_draft.id), {
            'product_id': str(product_p.id),
            'quantity': 4,
            'unit_price': '2.00',
            'lot_number': 'AMX-900',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['total_articles'] == 3
        assert Decimal(response.data['estimated_value']) == Decimal('71.50')
        assert response.data['version'] == 2

    def test_update_line(self, owner_client, manual_outgoing_draft, lot_a):
        line = manual_outgoing_draft.lines.get(stock_lot=lot_a)

        response = owner_client.patch(
            self._line_url(manual_outgoing_draft.id, line.id),
            {'quantity': 1, 'expected_version': 1},
            format='json',
        )

        assert response.status_code == status.HTTP_200_OK
        assert Decimal(response.data['estimated_value']) == Decimal('60.00')

    def test_update_line_with_stale_version(self, owner_client, manual_outgoing_draft, lot_a):
        line = manual_outgoing_draft.lines.get(stock_lot=lot_a)

        response = owner_client.patch(
            self._line_url(manual_outgoing_draft.id, line.id),
            {'quantity': 1, 'expected_version': 5},
            format='json',
        )

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_remove_line(self, owner_client, manual_outgoing_draft, lot_b):
        line = manual_outgoing_draft.lines.get(stock_lot=lot_b)

        response = owner_client.delete(self._line_url(manual_outgoing_draft.id, line.id))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['total_articles'] == 1

    def test_edit_after_send_rejected(self, owner_client, manual_outgoing_draft, lot_a):
        _put(owner_client, manual_outgoing_draft.id, 'send')
        line = manual_outgoing_draft.lines.get(stock_lot=lot_a)

        response = owner_client.patch(
            self._line_url(manual_outgoing_draft.id, line.id),
            {'quantity': 1},
            format='json',
        )

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['code'] == 'invalid_transition'
