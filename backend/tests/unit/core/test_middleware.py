"""
Unit Tests for HTTP middleware: maintenance gate, security headers, body size limits
"""
import pytest
from fastapi import FastAPI, Request
from httpx import AsyncClient, ASGITransport

from app.core.config import settings
from app.core.middleware import (
    RequestSizeLimitMiddleware,
    MaintenanceModeMiddleware,
    CONTENT_SECURITY_POLICY,
    MAINTENANCE_MESSAGE,
    upload_path_limits,
)
from app.services.maintenance_service import maintenance_state


class TestMaintenanceGate:

    async def test_open_when_disabled(self, client: AsyncClient, auth_headers):
        response = await client.get('/api/subjects/branches', headers=auth_headers)

        assert response.status_code == 200

    async def test_blocks_students(self, client: AsyncClient, auth_headers):
        maintenance_state.enabled = True

        response = await client.get('/api/subjects/branches', headers=auth_headers)

        assert response.status_code == 503
        assert response.json() == {"maintenance": True, "message": MAINTENANCE_MESSAGE}

    async def test_blocks_anonymous(self, client: AsyncClient):
        maintenance_state.enabled = True

        response = await client.get('/api/courses/public')

        assert response.status_code == 503

    @pytest.mark.parametrize('path', ['/api/health', '/api/notices/public', '/api/system/maintenance'])
    async def test_allowlist_passes(self, client: AsyncClient, path):
        maintenance_state.enabled = True

        response = await client.get(path)

        assert response.status_code != 503

    async def test_uploads_prefix_passes(self, client: AsyncClient):
        maintenance_state.enabled = True

        response = await client.get('/uploads/materials/missing.pdf')

        assert response.status_code == 404
        assert response.json()["error"] == "File not found"

    async def test_options_passes(self, client: AsyncClient):
        maintenance_state.enabled = True

        response = await client.options('/api/subjects/branches')

        assert response.status_code != 503

    async def test_admin_passes(self, client: AsyncClient, admin_auth_headers):
        maintenance_state.enabled = True

        response = await client.get('/api/subjects/branches', headers=admin_auth_headers)

        assert response.status_code == 200

    async def test_invalid_token_is_blocked(self, client: AsyncClient):
        maintenance_state.enabled = True

        response = await client.get('/api/subjects/branches', headers={'Authorization': 'Bearer garbage'})

        assert response.status_code == 503

    def test_allowed_path_matching(self):
        assert MaintenanceModeMiddleware.is_allowed_path('/api/users/login')
        assert MaintenanceModeMiddleware.is_allowed_path('/api/users/login/')
        assert MaintenanceModeMiddleware.is_allowed_path('/uploads/avatars/a.png')
        assert not MaintenanceModeMiddleware.is_allowed_path('/api/users/profile')


class TestSystemMaintenanceEndpoints:

    async def test_admin_toggle_persists(self, client: AsyncClient, admin_auth_headers):
        response = await client.post(
            '/api/system/maintenance', json={'maintenance': True}, headers=admin_auth_headers
        )

        assert response.status_code == 200
        assert response.json() == {"maintenance": True, "message": "Maintenance mode enabled"}
        assert maintenance_state.enabled is True

        maintenance_state.enabled = False
        response = await client.get('/api/system/maintenance')
        assert response.json() == {"maintenance": True}
        assert maintenance_state.enabled is True

    async def test_toggle_requires_boolean(self, client: AsyncClient, admin_auth_headers):
        response = await client.post('/api/system/maintenance', json={}, headers=admin_auth_headers)

        assert response.status_code == 400
        assert response.json()["error"] == "maintenance must be a boolean"

    async def test_toggle_requires_admin(self, client: AsyncClient, auth_headers):
        response = await client.post(
            '/api/system/maintenance', json={'maintenance': True}, headers=auth_headers
        )

        assert response.status_code == 403
        assert maintenance_state.enabled is False


class TestResponseHeaders:

    async def test_security_headers(self, client: AsyncClient):
        response = await client.get('/api/health')

        assert response.headers['X-Content-Type-Options'] == 'nosniff'
        assert response.headers['X-Frame-Options'] == 'DENY'
        assert response.headers['Referrer-Policy'] == 'strict-origin-when-cross-origin'
        assert response.headers['Content-Security-Policy'] == CONTENT_SECURITY_POLICY
        assert 'X-XSS-Protection' in response.headers

    async def test_request_id_propagated(self, client: AsyncClient):
        response = await client.get('/api/health', headers={'X-Request-ID': 'abc123'})

        assert response.headers['X-Request-ID'] == 'abc123'
        assert 'X-Response-Time' in response.headers

    async def test_health_reports_database(self, client: AsyncClient):
        response = await client.get('/api/health')

        assert response.json() == {"ok": True, "environment": "testing", "database": "connected"}


class TestRequestSizeLimit:

    @pytest.fixture
    def small_app(self):
        app = FastAPI()
        app.add_middleware(RequestSizeLimitMiddleware, max_size=16, path_limits={"/upload": 64})

        @app.post("/echo")
        @app.post("/upload")
        async def echo(request: Request):
            return {"size": len(await request.body())}

        return app

    async def test_rejects_large_body(self, small_app):
        async with AsyncClient(transport=ASGITransport(app=small_app), base_url='http://test') as ac:
            response = await ac.post('/echo', content=b'x' * 32)

        assert response.status_code == 413
        assert 'Request body too large' in response.json()['error']

    async def test_upload_route_gets_larger_limit(self, small_app):
        async with AsyncClient(transport=ASGITransport(app=small_app), base_url='http://test') as ac:
            response = await ac.post('/upload', content=b'x' * 32)

        assert response.status_code == 200
        assert response.json() == {"size": 32}

    def test_upload_paths(self):
        limits = upload_path_limits()

        assert limits['/api/materials/upload-base64'] == settings.MAX_UPLOAD_REQUEST_SIZE
        assert limits['/api/internships/apply'] == settings.MAX_UPLOAD_REQUEST_SIZE
