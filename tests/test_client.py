from __future__ import annotations

import io
import json
import tempfile
import unittest
from decimal import Decimal
from pathlib import Path
from unittest.mock import MagicMock, patch
from urllib.error import HTTPError, URLError

from desk_portal.client.api_client import ApiClient
from desk_portal.client.draft import SubmissionDraft
from desk_portal.client.errors import ApiError, BusyError, NetworkError, get_error_message
from desk_portal.client.session import SessionContext
from desk_portal.client.submission_client import RemittanceClient, SubmissionClient
from desk_portal.config import settings


def _response(payload: dict | None = None, *, content: bytes | None = None, headers: dict | None = None) -> MagicMock:
    response = MagicMock()
    response.__enter__.return_value = response
    response.read.return_value = content if content is not None else json.dumps(payload or {}).encode('utf-8')
    response.headers = headers or {}
    return response


def _http_error(code: int, payload: dict | None = None) -> HTTPError:
    body = json.dumps(payload).encode('utf-8') if payload is not None else b''
    return HTTPError('http://api.test/x', code, 'error', {}, io.BytesIO(body))


class ClientTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.session = SessionContext(token='tok-1', user={'role': 'desk'})
        self.api = ApiClient(self.session, base_url='http://api.test/api/v1', timeout=5)


class SessionContextTests(unittest.TestCase):
    def test_store_load_clear(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'session.json'
            SessionContext(path=path).store('abc', {'email': 'desk1@example.com', 'role': 'desk'})

            loaded = SessionContext(path=path).load()
            self.assertTrue(loaded.is_authenticated)
            self.assertEqual(loaded.role, 'desk')

            loaded.clear()
            self.assertFalse(path.exists())
            self.assertFalse(SessionContext(path=path).load().is_authenticated)

    def test_unreadable_file_is_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'session.json'
            path.write_text('{not json', encoding='utf-8')
            self.assertIsNone(SessionContext(path=path).load().token)

    def test_client_starts_from_configured_session_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / 'session.json'
            path.write_text(json.dumps({'token': 'saved', 'user': {'role': 'admin'}}), encoding='utf-8')
            with patch.object(settings, 'client_session_file', str(path)):
                api = ApiClient(base_url='http://portal.test/api/v1')

        self.assertEqual(api.session.path, path)
        self.assertEqual(api.session.token, 'saved')
        self.assertEqual(api.session.role, 'admin')


class ErrorMessageTests(unittest.TestCase):
    def test_message_then_error_then_status_default(self) -> None:
        self.assertEqual(get_error_message(ApiError(400, {'message': 'Tarih gerekli', 'error': 'X'})), 'Tarih gerekli')
        self.assertEqual(get_error_message(ApiError(400, {'error': 'VALIDATION_ERROR'})), 'VALIDATION_ERROR')
        self.assertEqual(get_error_message(ApiError(503)), 'Sunucu hatası oluştu. Lütfen daha sonra tekrar deneyin.')
        self.assertEqual(get_error_message(ApiError(404)), 'İstenen kaynak bulunamadı.')

    def test_network_and_fallback(self) -> None:
        self.assertIn('Sunucuya bağlanılamadı', get_error_message(NetworkError('refused')))
        self.assertIn('zaman aşımına', get_error_message(NetworkError(timeout=True)))
        self.assertEqual(get_error_message(None), 'Bir hata oluştu!')


class ApiClientTests(ClientTestCase):
    @patch('desk_portal.client.api_client.urlopen')
    def test_login_stores_session(self, urlopen_mock) -> None:
        session = SessionContext()
        api = ApiClient(session, base_url='http://api.test/api/v1')
        urlopen_mock.return_value = _response(
            {'success': True, 'data': {'token': 'new-token', 'user': {'email': 'desk1@example.com', 'role': 'desk'}}}
        )

        user = api.login('desk1@example.com', 'secret')

        self.assertEqual(user['role'], 'desk')
        self.assertEqual(session.token, 'new-token')
        request = urlopen_mock.call_args[0][0]
        self.assertEqual(request.full_url, 'http://api.test/api/v1/auth/login')
        self.assertEqual(json.loads(request.data), {'email': 'desk1@example.com', 'password': 'secret'})

    @patch('desk_portal.client.api_client.urlopen')
    def test_bearer_token_and_query_params(self, urlopen_mock) -> None:
        urlopen_mock.return_value = _response({'success': True, 'data': []})

        self.api.request('GET', '/desk/submitted', params={'startDate': '2024-03-01', 'status': None})

        request = urlopen_mock.call_args[0][0]
        self.assertEqual(request.get_header('Authorization'), 'Bearer tok-1')
        self.assertEqual(request.full_url, 'http://api.test/api/v1/desk/submitted?startDate=2024-03-01')
        self.assertEqual(urlopen_mock.call_args[1]['timeout'], 5)

    @patch('desk_portal.client.api_client.urlopen')
    def test_unauthorized_clears_session(self, urlopen_mock) -> None:
        urlopen_mock.side_effect = _http_error(401, {'success': False, 'message': 'Oturum süresi doldu.'})

        with self.assertRaises(ApiError) as ctx:
            self.api.me()

        self.assertEqual(ctx.exception.status, 401)
        self.assertEqual(str(ctx.exception), 'Oturum süresi doldu.')
        self.assertIsNone(self.session.token)

    @patch('desk_portal.client.api_client.urlopen')
    def test_network_failure(self, urlopen_mock) -> None:
        urlopen_mock.side_effect = URLError('connection refused')
        with self.assertRaises(NetworkError):
            self.api.me()
        self.assertEqual(self.session.token, 'tok-1')

    @patch('desk_portal.client.api_client.urlopen')
    def test_download_reads_filename(self, urlopen_mock) -> None:
        urlopen_mock.return_value = _response(
            content=b'PK\x03\x04',
            headers={'Content-Disposition': 'attachment; filename="Pusula_Desk_20240315.xlsx"'},
        )
        filename, content = SubmissionClient(self.api, 'desk').download_pusula('7')
        self.assertEqual(filename, 'Pusula_Desk_20240315.xlsx')
        self.assertEqual(content, b'PK\x03\x04')


class SubmissionClientTests(ClientTestCase):
    @patch('desk_portal.client.api_client.urlopen')
    def test_listing_degrades_to_empty_on_404_and_network_errors(self, urlopen_mock) -> None:
        client = SubmissionClient(self.api, 'bayi-dolum')

        urlopen_mock.side_effect = _http_error(404)
        self.assertEqual(client.list_submitted(), [])

        urlopen_mock.side_effect = URLError('down')
        self.assertEqual(client.list_submitted(status='pending_revision'), [])

        urlopen_mock.side_effect = _http_error(403, {'message': 'Yetkisiz'})
        with self.assertRaises(ApiError):
            client.list_submitted()

    @patch('desk_portal.client.api_client.urlopen')
    def test_second_mutation_while_busy_is_refused(self, urlopen_mock) -> None:
        client = SubmissionClient(self.api, 'desk')
        nested_errors = []

        def _in_flight(request, timeout):
            try:
                client.review('1', 'approve')
            except BusyError as exc:
                nested_errors.append(exc)
            return _response({'success': True, 'data': {'id': '1', 'status': 'submitted'}, 'warnings': []})

        urlopen_mock.side_effect = _in_flight
        client.submit({'date': '2024-03-15'})

        self.assertEqual(len(nested_errors), 1)
        self.assertEqual(urlopen_mock.call_count, 1)
        self.assertFalse(client.busy)

    @patch('desk_portal.client.api_client.urlopen')
    def test_busy_flag_released_after_error_and_state_kept(self, urlopen_mock) -> None:
        client = SubmissionClient(self.api, 'desk')
        client.records = [{'id': '1', 'status': 'submitted'}]
        urlopen_mock.side_effect = _http_error(409, {'success': False, 'error': 'INVALID_TRANSITION'})

        with self.assertRaises(ApiError):
            client.review('1', 'approve')

        self.assertFalse(client.busy)
        self.assertEqual(client.records, [{'id': '1', 'status': 'submitted'}])

        urlopen_mock.side_effect = None
        urlopen_mock.return_value = _response({'success': True, 'data': {'id': '1', 'status': 'approved'}})
        client.review('1', 'approve')
        self.assertEqual(client.records, [{'id': '1', 'status': 'approved'}])

    @patch('desk_portal.client.api_client.urlopen')
    def test_remittance_report(self, urlopen_mock) -> None:
        urlopen_mock.return_value = _response({'success': True, 'data': {'totals': {'total': 35}}})
        data = RemittanceClient(self.api).report(record_type='desk')
        self.assertEqual(data['totals']['total'], 35)
        self.assertIn('recordType=desk', urlopen_mock.call_args[0][0].full_url)


class SubmissionDraftTests(ClientTestCase):
    def test_credit_is_clamped_to_category_gross(self) -> None:
        draft = SubmissionDraft('desk')
        draft.set_quantity('tamKart', 2)
        self.assertEqual(draft.set_credit_card('kart', '250'), Decimal('100.00'))
        self.assertEqual(draft.preview().split.cash_for('kart'), Decimal('0.00'))

    def test_send_to_bank_snapshots_counted_total(self) -> None:
        draft = SubmissionDraft('desk')
        draft.set_count('vize', 'b20', 3)
        draft.set_count('vize', 'c050', 1)
        self.assertEqual(draft.send_to_bank('vize'), Decimal('60.50'))
        draft.set_count('vize', 'b20', 0)
        self.assertEqual(draft.bank_sent['vize'], Decimal('60.50'))
        with self.assertRaises(ValueError):
            draft.send_to_bank('kartKilifi')

    def test_preview_flags_mismatch(self) -> None:
        draft = SubmissionDraft('bayi-dolum')
        draft.set_quantity('bayiTamKart', 1)
        draft.set_count('kart', 'b20', 2)
        draft.set_count('kart', 'b5', 1)
        draft.set_count('kart', 'c1', 4)
        draft.set_count('kart', 'c050', 1)
        self.assertEqual([check.category for check in draft.preview().mismatches], ['kart'])

    def test_from_record_ignores_total_sent(self) -> None:
        draft = SubmissionDraft.from_record(
            {
                'id': '12',
                'recordType': 'desk',
                'date': '2024-03-15',
                'products': {'dolum': 10},
                'categoryCreditCards': {'dolum': 2.5},
                'payments': {'gunbasiNakit': 100.0},
                'banknotes': {'dolum': {'b5': 1}},
                'bankSentCash': {'dolum': 5.0, 'totalSent': 5.0},
            }
        )
        payload = draft.to_payload()
        self.assertEqual(draft.editing_id, '12')
        self.assertEqual(payload['bankSentCash'], {'dolum': '5.00', 'kart': '0.00', 'vize': '0.00'})
        self.assertEqual(payload['categoryCreditCards']['dolum'], '2.50')
        self.assertEqual(payload['banknotes']['dolum']['b5'], 1)

    @patch('desk_portal.client.api_client.urlopen')
    def test_save_draft_resubmits_and_resets_on_success(self, urlopen_mock) -> None:
        client = SubmissionClient(self.api, 'desk')
        draft = SubmissionDraft('desk')
        draft.editing_id = '12'
        draft.set_quantity('dolum', 5)

        urlopen_mock.side_effect = URLError('down')
        with self.assertRaises(NetworkError):
            client.save_draft(draft)
        self.assertEqual(draft.editing_id, '12')
        self.assertEqual(draft.products['dolum'], Decimal('5'))

        urlopen_mock.side_effect = None
        urlopen_mock.return_value = _response({'success': True, 'data': {'id': '12', 'status': 'revised'}})
        record = client.save_draft(draft)

        self.assertEqual(record['status'], 'revised')
        self.assertEqual(urlopen_mock.call_args[0][0].get_method(), 'PUT')
        self.assertIsNone(draft.editing_id)
        self.assertEqual(draft.products['dolum'], Decimal('0'))


if __name__ == '__main__':
    unittest.main()
