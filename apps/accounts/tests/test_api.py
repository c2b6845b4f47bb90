import pytest
from django.urls import reverse
from rest_framework import status

from apps.accounts.models import User


@pytest.mark.django_db
class TestCurrentUser:

    def test_current_user_with_establishment(self, authenticated_client, principal_establishment):
        response = authenticated_client.get(reverse('accounts:current-user'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['email'] == 'pharmacist@example.com'
        assert response.data['display_name'] == 'Claire Martin'
        assert response.data['establishment']['name'] == 'Pharmacie des Arcades'

    def test_current_user_without_establishment(self, authenticated_client):
        response = authenticated_client.get(reverse('accounts:current-user'))

        assert response.status_code == status.HTTP_200_OK
        assert response.data['establishment'] is None

    def test_current_user_requires_auth(self, api_client):
        response = api_client.get(reverse('accounts:current-user'))

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestTokens:

    def test_obtain_and_refresh_token(self, api_client, pharmacist):
        response = api_client.post(reverse('token_obtain_pair'), {
            'email': 'pharmacist@example.com',
            'password': 'TestPass123!',
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert 'access' in response.data

        response = api_client.post(reverse('token_refresh'), {
            'refresh': response.data['refresh'],
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert 'access' in response.data

    def test_wrong_password(self, api_client, pharmacist):
        response = api_client.post(reverse('token_obtain_pair'), {
            'email': 'pharmacist@example.com',
            'password': 'nope',
        }, format='json')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestUserModel:

    def test_display_name_falls_back_to_email(self):
        user = User.objects.create_user(email='anon@example.com', password='TestPass123!')

        assert user.get_display_name() == 'anon'

    def test_email_is_normalized(self):
        user = User.objects.create_user(email='Someone@EXAMPLE.com', password='TestPass123!')

        assert user.email == 'Someone@example.com'

    def test_inactive_principal_is_ignored(self, pharmacist, principal_establishment):
        principal_establishment.is_active = False
        principal_establishment.save()

        assert pharmacist.get_principal_establishment() is None
