from __future__ import annotations

import threading
from contextlib import contextmanager

from desk_portal.client.api_client import ApiClient
from desk_portal.client.draft import SubmissionDraft
from desk_portal.client.errors import ApiError, BusyError, NetworkError
from desk_portal.models import RecordType


class SubmissionClient:
    """Per record type access to the submit/review endpoints.

    Mutating calls share one in-flight guard: a second call while one is
    running raises ``BusyError`` without reaching the network. Cached records
    are only replaced once a call has succeeded.
    """

    def __init__(self, api: ApiClient, record_type: RecordType | str) -> None:
        self.api = api
        self.record_type = RecordType(record_type)
        self.records: list[dict] = []
        self.last_warnings: list[str] = []
        self._in_flight = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._in_flight.locked()

    @contextmanager
    def _mutation(self):
        if not self._in_flight.acquire(blocking=False):
            raise BusyError()
        try:
            yield
        finally:
            self._in_flight.release()

    def _path(self, suffix: str) -> str:
        return f'/{self.record_type.value}{suffix}'

    def _replace_cached(self, record: dict) -> None:
        self.records = [record if item.get('id') == record.get('id') else item for item in self.records]

    def submit(self, payload: dict) -> dict:
        with self._mutation():
            parsed = self.api.request('POST', self._path('/submit'), payload=payload)
        self.last_warnings = list(parsed.get('warnings') or [])
        record = parsed.get('data') or {}
        self.records = [record, *self.records]
        return record

    def list_submitted(self, *, start_date: str | None = None, end_date: str | None = None, status: str | None = None) -> list[dict]:
        try:
            parsed = self.api.request(
                'GET',
                self._path('/submitted'),
                params={'startDate': start_date, 'endDate': end_date, 'status': status},
            )
        except NetworkError:
            return []
        except ApiError as exc:
            if exc.status == 404:
                return []
            raise
        self.records = list(parsed.get('data') or [])
        return self.records

    def get(self, submission_id: str) -> dict:
        return self.api.request('GET', self._path(f'/submitted/{submission_id}')).get('data') or {}

    def review(self, submission_id: str, action: str, notes: str | None = None) -> dict:
        with self._mutation():
            parsed = self.api.request(
                'PATCH',
                self._path(f'/submitted/{submission_id}/review'),
                payload={'action': action, 'notes': notes},
            )
        record = parsed.get('data') or {}
        self._replace_cached(record)
        return record

    def resubmit(self, submission_id: str, payload: dict) -> dict:
        with self._mutation():
            parsed = self.api.request('PUT', self._path(f'/submitted/{submission_id}'), payload=payload)
        self.last_warnings = list(parsed.get('warnings') or [])
        record = parsed.get('data') or {}
        self._replace_cached(record)
        return record

    def save_draft(self, draft: SubmissionDraft) -> dict:
        """Submit a new draft or resubmit the record it was loaded from; the draft is reset only on success."""
        if draft.record_type != self.record_type:
            raise ValueError(f'Draft is for {draft.record_type.value}, not {self.record_type.value}')
        if draft.editing_id:
            record = self.resubmit(draft.editing_id, draft.to_payload())
        else:
            record = self.submit(draft.to_payload())
        draft.reset()
        return record

    def download_pusula(self, submission_id: str) -> tuple[str | None, bytes]:
        return self.api.download(self._path(f'/submitted/{submission_id}/pusula'))


class RemittanceClient:
    def __init__(self, api: ApiClient) -> None:
        self.api = api

    @staticmethod
    def _params(record_type: str, start_date: str | None, end_date: str | None) -> dict:
        return {'recordType': record_type, 'startDate': start_date, 'endDate': end_date}

    def report(self, *, record_type: str = 'all', start_date: str | None = None, end_date: str | None = None) -> dict:
        parsed = self.api.request('GET', '/bank-remittance', params=self._params(record_type, start_date, end_date))
        return parsed.get('data') or {}

    def download_bulk_pusula(
        self, *, record_type: str = 'all', start_date: str | None = None, end_date: str | None = None
    ) -> tuple[str | None, bytes]:
        return self.api.download('/bank-remittance/pusula', params=self._params(record_type, start_date, end_date))
