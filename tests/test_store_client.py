"""Unit tests for RemoteStoreClient."""

import asyncio
import json

import httpx
import pytest

from uploader.cancellation import CancellationHandle
from uploader.exceptions import NetworkError, ServerError, UploadCancelledError
from uploader.store_client import ProgressReader, RemoteStoreClient


def make_client(handler, **kwargs) -> RemoteStoreClient:
    return RemoteStoreClient('http://store', transport=httpx.MockTransport(handler), **kwargs)


@pytest.fixture
def recorded():
    """Requests seen by the mock transport."""
    return []


@pytest.fixture
def client_with_mock(recorded):
    """Create RemoteStoreClient with a mocked store."""
    def handler(request):
        recorded.append(request)
        if request.url.path == '/check':
            body = json.loads(request.content)
            if body['hash'] == 'done':
                return httpx.Response(200, json={'uploaded': True, 'url': '/uploads/done-a.bin'})
            return httpx.Response(200, json={'uploaded': False, 'uploaded_chunks': [0, 2]})
        elif request.url.path == '/upload':
            return httpx.Response(200, json={'success': True, 'chunkIndex': request.headers['X-Chunk-Index']})
        elif request.url.path == '/merge':
            return httpx.Response(200, json={'success': True, 'url': '/uploads/abc-a.bin'})
        elif request.url.path == '/':
            return httpx.Response(200, json={'status': 'ok'})
        return httpx.Response(404)

    return make_client(handler)


@pytest.mark.asyncio
async def test_check_reports_received_chunks(client_with_mock, recorded):
    result = await client_with_mock.check('abc', 'a.bin', 5000)

    assert result.already_complete is False
    assert result.received_chunk_indexes == frozenset({0, 2})
    assert json.loads(recorded[0].content) == {'hash': 'abc', 'filename': 'a.bin', 'fileSize': 5000}


@pytest.mark.asyncio
async def test_check_reports_complete_file(client_with_mock):
    result = await client_with_mock.check('done', 'a.bin', 5000)

    assert result.already_complete is True
    assert result.received_chunk_indexes == frozenset()
    assert result.url == '/uploads/done-a.bin'


@pytest.mark.asyncio
async def test_upload_chunk_sends_form_and_headers(client_with_mock, recorded):
    await client_with_mock.upload_chunk('abc', 'a.bin', 3, 7, b'payload-bytes')

    request = recorded[0]
    assert request.method == 'POST'
    assert request.headers['X-File-Hash'] == 'abc'
    assert request.headers['X-Chunk-Index'] == '3'
    assert request.headers['Content-Type'].startswith('multipart/form-data')
    assert b'name="chunkIndex"\r\n\r\n3' in request.content
    assert b'name="totalChunks"\r\n\r\n7' in request.content
    assert b'name="hash"\r\n\r\nabc' in request.content
    assert b'filename="a.bin"' in request.content
    assert b'payload-bytes' in request.content


@pytest.mark.asyncio
async def test_upload_chunk_reports_progress(client_with_mock):
    data = b'x' * (200 * 1024)
    progress = []

    await client_with_mock.upload_chunk('abc', 'a.bin', 0, 1, data, on_progress=lambda sent, total: progress.append((sent, total)))

    assert progress
    assert progress[-1] == (len(data), len(data))
    sent = [p[0] for p in progress]
    assert sent == sorted(sent)


@pytest.mark.asyncio
async def test_merge_sends_totals(client_with_mock, recorded):
    result = await client_with_mock.merge('abc', 'a.bin', 5000, 3)

    assert result.url == '/uploads/abc-a.bin'
    assert json.loads(recorded[0].content) == {
        'hash': 'abc',
        'filename': 'a.bin',
        'size': 5000,
        'totalChunks': 3,
    }


@pytest.mark.asyncio
async def test_server_error_uses_store_message():
    def handler(request):
        return httpx.Response(500, json={'error': 'Failed to merge chunks: disk full'})

    client = make_client(handler)

    with pytest.raises(ServerError) as exc_info:
        await client.merge('abc', 'a.bin', 10, 1)

    assert exc_info.value.status == 500
    assert 'disk full' in exc_info.value.message


@pytest.mark.asyncio
async def test_server_error_without_body_uses_status_text():
    def handler(request):
        return httpx.Response(503, text='')

    client = make_client(handler)

    with pytest.raises(ServerError) as exc_info:
        await client.check('abc', 'a.bin', 10)

    assert exc_info.value.status == 503
    assert exc_info.value.message == 'Service unavailable'


@pytest.mark.asyncio
async def test_malformed_check_response():
    def handler(request):
        return httpx.Response(200, text='<html>proxy</html>')

    client = make_client(handler)

    with pytest.raises(ServerError):
        await client.check('abc', 'a.bin', 10)


@pytest.mark.asyncio
async def test_connect_error_becomes_network_error():
    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    client = make_client(handler)

    with pytest.raises(NetworkError):
        await client.upload_chunk('abc', 'a.bin', 0, 1, b'data')


@pytest.mark.asyncio
async def test_timeout_becomes_network_error():
    def handler(request):
        raise httpx.ReadTimeout('too slow', request=request)

    client = make_client(handler)

    with pytest.raises(NetworkError):
        await client.check('abc', 'a.bin', 10)


@pytest.mark.asyncio
async def test_cancel_aborts_in_flight_request():
    started = asyncio.Event()

    async def handler(request):
        started.set()
        await asyncio.Event().wait()

    client = make_client(handler)
    token = CancellationHandle()

    upload = asyncio.create_task(client.upload_chunk('abc', 'a.bin', 0, 1, b'data', token=token))
    await started.wait()
    token.cancel()

    with pytest.raises(UploadCancelledError):
        await upload


@pytest.mark.asyncio
async def test_cancelled_token_sends_nothing(recorded, client_with_mock):
    token = CancellationHandle()
    token.cancel()

    with pytest.raises(UploadCancelledError):
        await client_with_mock.check('abc', 'a.bin', 10, token)

    assert recorded == []


@pytest.mark.asyncio
async def test_api_key_sent_as_bearer(recorded):
    def handler(request):
        recorded.append(request)
        return httpx.Response(200, json={'uploaded': False, 'uploaded_chunks': []})

    client = make_client(handler, api_key='secret123')
    await client.check('abc', 'a.bin', 10)

    assert recorded[0].headers['Authorization'] == 'Bearer secret123'


@pytest.mark.asyncio
async def test_ping(client_with_mock):
    assert await client_with_mock.ping() is True


@pytest.mark.asyncio
async def test_ping_unreachable():
    def handler(request):
        raise httpx.ConnectError('connection refused', request=request)

    assert await make_client(handler).ping() is False


@pytest.mark.asyncio
async def test_from_config(temp_config):
    temp_config.data['store_url'] = 'http://chunks.example:9000/'
    client = RemoteStoreClient.from_config(temp_config)

    assert client.base_url == 'http://chunks.example:9000'
    await client.close()


def test_progress_reader_reports_position():
    progress = []
    reader = ProgressReader(b'abcdefgh', lambda sent, total: progress.append((sent, total)))

    assert reader.read(3) == b'abc'
    assert reader.read(10) == b'defgh'
    assert reader.read(10) == b''

    assert progress == [(3, 8), (8, 8)]


def test_progress_reader_empty_chunk_reports_once_complete():
    progress = []
    reader = ProgressReader(b'', lambda sent, total: progress.append((sent, total)))

    assert reader.read(10) == b''
    assert progress == [(0, 0)]
