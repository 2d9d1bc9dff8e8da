from __future__ import annotations

import unittest

from fastapi.testclient import TestClient
from support import PASSWORD, bayi_payload, desk_payload, make_principal, reset_database

from desk_portal.main import app
from desk_portal.models import PrincipalRole
from desk_portal.security.csrf import CSRF_COOKIE_NAME


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        reset_database()
        make_principal('desk1@example.com', PrincipalRole.DESK)
        make_principal('desk2@example.com', PrincipalRole.DESK)
        make_principal('sorumlu@example.com', PrincipalRole.RESPONSIBLE)
        make_principal('admin@example.com', PrincipalRole.ADMIN)
        self.client = TestClient(app)

    def login(self, email: str) -> dict:
        response = self.client.post('/api/v1/auth/login', json={'email': email, 'password': PASSWORD})
        self.assertEqual(response.status_code, 200, response.text)
        return {'Authorization': f'Bearer {response.json()["data"]["token"]}'}

    def submit(self, headers: dict, record_type: str = 'desk', payload: dict | None = None):
        if payload is None:
            payload = desk_payload() if record_type == 'desk' else bayi_payload()
        return self.client.post(f'/api/v1/{record_type}/submit', json=payload, headers=headers)


class AuthApiTests(ApiTestCase):
    def test_bad_password_is_rejected(self) -> None:
        response = self.client.post('/api/v1/auth/login', json={'email': 'desk1@example.com', 'password': 'nope'})
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['success'], False)
        self.assertEqual(response.json()['error'], 'INVALID_CREDENTIALS')

    def test_requests_without_session_get_401(self) -> None:
        response = self.client.get('/api/v1/desk/submitted')
        self.assertEqual(response.status_code, 401)
        self.assertEqual(response.json()['error'], 'UNAUTHORIZED')

    def test_me_and_logout(self) -> None:
        headers = self.login('sorumlu@example.com')
        me = self.client.get('/api/v1/auth/me', headers=headers)
        self.assertEqual(me.json()['data']['role'], 'responsible')
        self.assertEqual(me.headers['X-Robots-Tag'], 'noindex, nofollow, noarchive')

        self.assertEqual(self.client.post('/api/v1/auth/logout', headers=headers).status_code, 200)
        self.client.cookies.clear()
        self.assertEqual(self.client.get('/api/v1/auth/me', headers=headers).status_code, 401)

    def test_cookie_session_needs_csrf_header_for_writes(self) -> None:
        self.login('desk1@example.com')

        blocked = self.client.post('/api/v1/desk/submit', json=desk_payload())
        self.assertEqual(blocked.status_code, 403)

        token = self.client.cookies.get(CSRF_COOKIE_NAME)
        allowed = self.client.post('/api/v1/desk/submit', json=desk_payload(), headers={'X-CSRF-Token': token})
        self.assertEqual(allowed.status_code, 201, allowed.text)


class SubmissionApiTests(ApiTestCase):
    def test_submit_returns_totals_and_status(self) -> None:
        response = self.submit(self.login('desk1@example.com'))

        self.assertEqual(response.status_code, 201, response.text)
        body = response.json()
        self.assertTrue(body['success'])
        self.assertEqual(body['warnings'], [])
        self.assertEqual(body['data']['status'], 'submitted')
        self.assertEqual(body['data']['recordType'], 'desk')
        self.assertEqual(body['data']['totals']['totalSales'], 210.0)
        self.assertEqual(body['data']['bankSentCash']['totalSent'], 100.0)
        self.assertEqual(body['data']['submittedByEmail'], 'desk1@example.com')

    def test_submit_reports_banknote_mismatch_as_warning(self) -> None:
        payload = desk_payload(banknotes={'dolum': {'b50': 1}, 'kart': {'b100': 1}})
        response = self.submit(self.login('desk1@example.com'), payload=payload)
        self.assertEqual(response.status_code, 201)
        self.assertEqual(len(response.json()['warnings']), 1)
        checks = {check['category']: check for check in response.json()['data']['banknoteChecks']}
        self.assertTrue(checks['dolum']['mismatch'])
        self.assertFalse(checks['kart']['mismatch'])

    def test_reviewers_cannot_submit(self) -> None:
        response = self.submit(self.login('admin@example.com'))
        self.assertEqual(response.status_code, 403)

    def test_credit_above_gross_is_a_validation_error(self) -> None:
        payload = desk_payload(categoryCreditCards={'dolum': 500})
        response = self.submit(self.login('desk1@example.com'), payload=payload)
        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.json()['error'], 'VALIDATION_ERROR')

    def test_unknown_product_key_is_rejected(self) -> None:
        payload = desk_payload(products={'bayiDolum': 5})
        response = self.submit(self.login('desk1@example.com'), payload=payload)
        self.assertEqual(response.status_code, 400)

    def test_missing_date_is_a_422(self) -> None:
        payload = desk_payload()
        del payload['date']
        response = self.submit(self.login('desk1@example.com'), payload=payload)
        self.assertEqual(response.status_code, 422)
        self.assertFalse(response.json()['success'])

    def test_review_flow_and_conflict(self) -> None:
        created = self.submit(self.login('desk1@example.com')).json()['data']
        reviewer = self.login('sorumlu@example.com')
        url = f'/api/v1/desk/submitted/{created["id"]}/review'

        approved = self.client.patch(url, json={'action': 'approve', 'notes': 'Tamam'}, headers=reviewer)
        self.assertEqual(approved.status_code, 200, approved.text)
        self.assertEqual(approved.json()['data']['status'], 'approved')
        self.assertEqual(approved.json()['data']['reviewedByRole'], 'responsible')

        again = self.client.patch(url, json={'action': 'reject'}, headers=reviewer)
        self.assertEqual(again.status_code, 409)
        self.assertEqual(again.json()['error'], 'INVALID_TRANSITION')

    def test_desk_users_cannot_review(self) -> None:
        desk = self.login('desk1@example.com')
        created = self.submit(desk).json()['data']
        response = self.client.patch(
            f'/api/v1/desk/submitted/{created["id"]}/review', json={'action': 'approve'}, headers=desk
        )
        self.assertEqual(response.status_code, 403)

    def test_unknown_review_action_is_rejected(self) -> None:
        created = self.submit(self.login('desk1@example.com')).json()['data']
        response = self.client.patch(
            f'/api/v1/desk/submitted/{created["id"]}/review',
            json={'action': 'archive'},
            headers=self.login('admin@example.com'),
        )
        self.assertEqual(response.status_code, 422)

    def test_revision_round_trip(self) -> None:
        desk = self.login('desk1@example.com')
        created = self.submit(desk).json()['data']
        self.client.patch(
            f'/api/v1/desk/submitted/{created["id"]}/review',
            json={'action': 'revise', 'notes': 'Vize eksik'},
            headers=self.login('admin@example.com'),
        )

        waiting = self.client.get('/api/v1/desk/submitted', params={'status': 'pending_revision'}, headers=desk)
        self.assertEqual([item['id'] for item in waiting.json()['data']], [created['id']])

        other = self.client.put(
            f'/api/v1/desk/submitted/{created["id"]}', json=desk_payload(), headers=self.login('desk2@example.com')
        )
        self.assertEqual(other.status_code, 403)

        updated = self.client.put(f'/api/v1/desk/submitted/{created["id"]}', json=desk_payload(), headers=desk)
        self.assertEqual(updated.status_code, 200, updated.text)
        self.assertEqual(updated.json()['data']['id'], created['id'])
        self.assertEqual(updated.json()['data']['status'], 'revised')
        self.assertEqual(updated.json()['data']['revisionCount'], 1)

        second = self.client.put(f'/api/v1/desk/submitted/{created["id"]}', json=desk_payload(), headers=desk)
        self.assertEqual(second.status_code, 409)

    def test_detail_visibility(self) -> None:
        created = self.submit(self.login('desk1@example.com')).json()['data']
        url = f'/api/v1/desk/submitted/{created["id"]}'

        self.assertEqual(self.client.get(url, headers=self.login('desk2@example.com')).status_code, 403)
        detail = self.client.get(url, headers=self.login('admin@example.com'))
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(len(detail.json()['data']['banknoteChecks']), 3)
        self.assertEqual(self.client.get('/api/v1/desk/submitted/9999', headers=self.login('admin@example.com')).status_code, 404)
        self.assertEqual(self.client.get(f'/api/v1/bayi-dolum/submitted/{created["id"]}', headers=self.login('admin@example.com')).status_code, 404)

    def test_bad_status_filter(self) -> None:
        response = self.client.get('/api/v1/desk/submitted', params={'status': 'draft'}, headers=self.login('admin@example.com'))
        self.assertEqual(response.status_code, 400)

    def test_pusula_download(self) -> None:
        created = self.submit(self.login('desk1@example.com')).json()['data']
        response = self.client.get(
            f'/api/v1/desk/submitted/{created["id"]}/pusula', headers=self.login('sorumlu@example.com')
        )
        self.assertEqual(response.status_code, 200)
        self.assertIn('Pusula_Desk_20240315.xlsx', response.headers['content-disposition'])
        self.assertTrue(response.content.startswith(b'PK'))


class BankRemittanceApiTests(ApiTestCase):
    def test_report_and_bulk_export(self) -> None:
        self.submit(self.login('desk1@example.com'), payload=desk_payload(bankSentCash={'dolum': 20}))
        self.submit(
            self.login('desk2@example.com'),
            record_type='bayi-dolum',
            payload=bayi_payload(products={'bayiDolum': 40, 'bayiTamKart': 1}, bankSentCash={'kart': 15}),
        )
        admin = self.login('admin@example.com')

        report = self.client.get('/api/v1/bank-remittance', headers=admin).json()['data']
        self.assertEqual(report['count'], 2)
        self.assertEqual(report['totals']['total'], 35.0)

        desk_only = self.client.get('/api/v1/bank-remittance', params={'recordType': 'desk'}, headers=admin).json()
        self.assertEqual(desk_only['data']['totals']['total'], 20.0)

        bulk = self.client.get('/api/v1/bank-remittance/pusula', headers=admin)
        self.assertEqual(bulk.status_code, 200)
        self.assertIn('Pusula_Toplu_', bulk.headers['content-disposition'])

    def test_bulk_export_without_records_is_404(self) -> None:
        response = self.client.get('/api/v1/bank-remittance/pusula', headers=self.login('admin@example.com'))
        self.assertEqual(response.status_code, 404)

    def test_bulk_export_is_reviewer_only(self) -> None:
        desk = self.login('desk1@example.com')
        self.assertEqual(self.submit(desk).status_code, 201)

        response = self.client.get('/api/v1/bank-remittance/pusula', headers=desk)
        self.assertEqual(response.status_code, 403)
        self.assertEqual(response.json()['error'], 'FORBIDDEN')

    def test_unknown_record_type_filter(self) -> None:
        response = self.client.get(
            '/api/v1/bank-remittance', params={'recordType': 'bayi'}, headers=self.login('admin@example.com')
        )
        self.assertEqual(response.status_code, 400)


if __name__ == '__main__':
    unittest.main()
