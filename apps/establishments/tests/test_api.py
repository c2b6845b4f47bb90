import pytest
from rest_framework import status


@pytest.mark.django_db
class TestEstablishmentAPI:

    def test_list_directory(self, authenticated_client, directory):
        response = authenticated_client.get('/api/establishments/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['count'] == 3
        # Principal first
        assert response.data['results'][0]['is_principal'] is True

    def test_search_and_type(self, authenticated_client, directory):
        response = authenticated_client.get('/api/establishments/', {'search': 'bourse'})
        assert response.data['count'] == 1
        assert response.data['results'][0]['is_linked'] is True

        response = authenticated_client.get('/api/establishments/', {'type': 'wholesaler'})
        assert response.data['count'] == 1

    def test_invalid_type(self, authenticated_client, directory):
        response = authenticated_client.get('/api/establishments/', {'type': 'spaceport'})

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_retrieve(self, authenticated_client, directory):
        response = authenticated_client.get(f'/api/establishments/{directory[1].id}/')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['name'] == 'Grossiste Sud-Ouest'

    def test_retrieve_foreign_entry(self, authenticated_client, foreign_establishment):
        response = authenticated_client.get(f'/api/establishments/{foreign_establishment.id}/')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_directory_is_read_only(self, authenticated_client, directory):
        response = authenticated_client.post('/api/establishments/', {'name': 'New'}, format='json')

        assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED

    def test_requires_auth(self, api_client):
        response = api_client.get('/api/establishments/')

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
